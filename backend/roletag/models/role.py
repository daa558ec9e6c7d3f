from typing import List

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from roletag.models.base import AccountScopedMixin, Base, TimestampMixin, UUIDMixin


class Role(Base, UUIDMixin, TimestampMixin, AccountScopedMixin):
    """
    An account role. Membership and policies are stored the way the
    directory stores them: lists of hierarchical paths (DNs).

    members may mix sub-user DNs and whole-account DNs (cross-account
    delegation); default_members is the subset active without explicit
    activation.
    """
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100))
    members: Mapped[List[str]] = mapped_column(JSON, default=list)
    default_members: Mapped[List[str]] = mapped_column(JSON, default=list)
    policies: Mapped[List[str]] = mapped_column(JSON, default=list)

    __table_args__ = (
        UniqueConstraint('account_id', 'name', name='uq_role_name'),
    )
