"""Cross-account lookups for delegated role members."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from roletag.errors import BackendUnavailableError
from roletag.models.account import Account
from roletag.schemas.membership import AccountInfo

logger = logging.getLogger(__name__)


class AccountLookup:
    def __init__(self, sessionmaker: async_sessionmaker):
        self.sessionmaker = sessionmaker

    async def get_account(self, account_id: UUID) -> Optional[AccountInfo]:
        """Public identity of an account, or None when it does not exist."""
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(select(Account).where(Account.id == account_id))
                account = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Account lookup for {account_id} failed: {e}")
            raise BackendUnavailableError("Account service unavailable") from e
        if account is None:
            logger.debug(f"Account {account_id} not found")
            return None
        return AccountInfo.model_validate(account)
