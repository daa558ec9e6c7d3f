"""Role-tag binding records for resources without storage of their own."""
from typing import List

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roletag.models.base import AccountScopedMixin, Base, TimestampMixin, UUIDMixin


class AccountResource(Base, UUIDMixin, TimestampMixin, AccountScopedMixin):
    """
    Binding record for a "virtual" resource such as "the list of users" or
    "the ability to create policies". Machines keep their role tags on the
    machine itself and never get one of these.
    """
    __tablename__ = "account_resources"

    name: Mapped[str] = mapped_column(String(512))
    member_roles: Mapped[List[str]] = mapped_column(JSON, default=list)  # role DNs

    __table_args__ = (
        UniqueConstraint('account_id', 'name', name='uq_account_resource_name'),
    )
