"""
Directory store.

Account-scoped entries (sub-users, roles, policies and resource binding
records) kept in relational tables. Lookups mirror the directory API the
resolvers were written against: a filtered search under an account, built as
a single-term match or a disjunction over every requested value, so a batch of
references always costs one round trip.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from roletag.errors import BackendUnavailableError, InvalidArgumentError, NotFoundError
from roletag.models.account import Account, SubUser
from roletag.models.policy import Policy
from roletag.models.resource import AccountResource
from roletag.models.role import Role

logger = logging.getLogger(__name__)

SEARCHABLE = {
    Role: {"name", "id"},
    Policy: {"name", "id"},
    SubUser: {"login", "id"},
}


def match_filter(column, values: Sequence[Any]):
    """Single-term equality for one value, disjunction otherwise."""
    if len(values) == 1:
        return column == values[0]
    return or_(*[column == v for v in values])


class DirectoryStore:
    def __init__(self, sessionmaker: async_sessionmaker):
        self.sessionmaker = sessionmaker

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def _search(self, model, account_id: UUID, field: str, values: Sequence[Any]) -> list:
        if field not in SEARCHABLE[model]:
            raise ValueError(f"Cannot search {model.__tablename__} by {field}")
        query = select(model).where(model.account_id == account_id)
        if values:
            query = query.where(match_filter(getattr(model, field), list(values)))
        return await self._scalars(query)

    async def search_roles(self, account_id: UUID, field: str, values: Sequence[Any]) -> List[Role]:
        return await self._search(Role, account_id, field, values)

    async def search_policies(self, account_id: UUID, field: str, values: Sequence[Any]) -> List[Policy]:
        return await self._search(Policy, account_id, field, values)

    async def search_users(self, account_id: UUID, field: str, values: Sequence[Any]) -> List[SubUser]:
        return await self._search(SubUser, account_id, field, values)

    async def list_roles(self, account_id: UUID) -> List[Role]:
        return await self.search_roles(account_id, "name", [])

    async def list_policies(self, account_id: UUID) -> List[Policy]:
        return await self.search_policies(account_id, "name", [])

    async def list_users(self, account_id: UUID) -> List[SubUser]:
        return await self.search_users(account_id, "login", [])

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    async def get_account(self, key: str) -> Account:
        """Account by login or UUID."""
        try:
            column = Account.id == UUID(key)
        except ValueError:
            column = Account.login == key
        account = await self._first(select(Account).where(column))
        if account is None:
            raise NotFoundError(f"{key} does not exist")
        return account

    async def get_account_by_id(self, account_id: UUID) -> Optional[Account]:
        return await self._first(select(Account).where(Account.id == account_id))

    async def get_user_by_id(self, user_id: UUID) -> Optional[SubUser]:
        return await self._first(select(SubUser).where(SubUser.id == user_id))

    async def _get_named(self, model, field: str, account_id: UUID, key: str, label: str):
        try:
            column = model.id == UUID(key)
        except ValueError:
            column = getattr(model, field) == key
        entry = await self._first(select(model).where(model.account_id == account_id, column))
        if entry is None:
            raise NotFoundError(f"{label} {key} does not exist")
        return entry

    async def get_role(self, account_id: UUID, key: str) -> Role:
        return await self._get_named(Role, "name", account_id, key, "role")

    async def get_policy(self, account_id: UUID, key: str) -> Policy:
        return await self._get_named(Policy, "name", account_id, key, "policy")

    async def get_user(self, account_id: UUID, key: str) -> SubUser:
        return await self._get_named(SubUser, "login", account_id, key, "user")

    async def get_resource(self, account_id: UUID, name: str) -> AccountResource:
        resource = await self._first(
            select(AccountResource).where(
                AccountResource.account_id == account_id,
                AccountResource.name == name,
            )
        )
        if resource is None:
            raise NotFoundError(f"resource {name} does not exist")
        return resource

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def modify_resource(self, account_id: UUID, resource_id: UUID, entry: Dict[str, Any]) -> AccountResource:
        """Upsert a binding record by its internal identifier."""
        async def _modify(session):
            resource = await session.get(AccountResource, resource_id)
            if resource is None:
                resource = AccountResource(id=resource_id, account_id=account_id, name=entry["name"])
                session.add(resource)
            resource.name = entry["name"]
            resource.member_roles = list(entry.get("member_roles", []))
            await session.commit()
            await session.refresh(resource)
            return resource
        return await self._write(_modify)

    async def delete_resource(self, account_id: UUID, resource_id: UUID) -> None:
        async def _delete(session):
            await session.execute(
                delete(AccountResource).where(
                    AccountResource.account_id == account_id,
                    AccountResource.id == resource_id,
                )
            )
            await session.commit()
        await self._write(_delete)

    async def add_entry(self, entry):
        """Insert a role, policy or sub-user."""
        if entry.id is None:
            entry.id = uuid4()

        async def _add(session):
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
            return entry
        return await self._write(_add)

    async def modify_entry(self, model, entry_id: UUID, changes: Dict[str, Any]):
        async def _modify(session):
            entry = await session.get(model, entry_id)
            if entry is None:
                raise NotFoundError(f"{model.__tablename__} {entry_id} does not exist")
            for key, value in changes.items():
                setattr(entry, key, value)
            await session.commit()
            await session.refresh(entry)
            return entry
        return await self._write(_modify)

    async def delete_entry(self, model, entry_id: UUID) -> None:
        async def _delete(session):
            await session.execute(delete(model).where(model.id == entry_id))
            await session.commit()
        await self._write(_delete)

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    async def _scalars(self, query) -> list:
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Directory search failed: {e}")
            raise BackendUnavailableError("Directory service unavailable") from e

    async def _first(self, query):
        rows = await self._scalars(query.limit(1))
        return rows[0] if rows else None

    async def _write(self, func):
        try:
            async with self.sessionmaker() as session:
                return await func(session)
        except IntegrityError as e:
            logger.warning(f"Directory write rejected: {e}")
            raise InvalidArgumentError("entry already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Directory write failed: {e}")
            raise BackendUnavailableError("Directory service unavailable") from e
