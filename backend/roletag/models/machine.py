from enum import Enum
from typing import List, Optional
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from roletag.models.base import Base, TimestampMixin, UUIDMixin


class MachineState(str, Enum):
    PROVISIONING = "provisioning"
    RUNNING = "running"
    STOPPED = "stopped"
    DESTROYED = "destroyed"


class Machine(Base, UUIDMixin, TimestampMixin):
    """Instance inventory record. Role tags live here as role UUIDs."""
    __tablename__ = "machines"

    owner_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    alias: Mapped[Optional[str]] = mapped_column(String(189), nullable=True)
    state: Mapped[MachineState] = mapped_column(default=MachineState.RUNNING)
    role_tags: Mapped[List[str]] = mapped_column(JSON, default=list)
