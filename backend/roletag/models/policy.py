from typing import Optional

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roletag.models.base import AccountScopedMixin, Base, TimestampMixin, UUIDMixin


class Policy(Base, UUIDMixin, TimestampMixin, AccountScopedMixin):
    __tablename__ = "policies"

    name: Mapped[str] = mapped_column(String(100))
    # Rule document, usually a JSON-serialized list of rule strings
    rules: Mapped[str] = mapped_column(Text, default="[]")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('account_id', 'name', name='uq_policy_name'),
    )
