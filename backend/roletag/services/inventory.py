"""
Instance inventory.

Physical instances carry their own role tags (a list of role UUIDs) on the
machine record, so tagging a machine never touches the directory.
"""
import logging
from typing import List, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from roletag.errors import BackendUnavailableError, NotFoundError
from roletag.models.machine import Machine, MachineState

logger = logging.getLogger(__name__)


class InstanceInventory:
    def __init__(self, sessionmaker: async_sessionmaker):
        self.sessionmaker = sessionmaker

    async def list_machines(self, owner_id: UUID) -> List[Machine]:
        query = select(Machine).where(
            Machine.owner_id == owner_id,
            Machine.state != MachineState.DESTROYED,
        ).order_by(Machine.created_at)
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to list machines for {owner_id}: {e}")
            raise BackendUnavailableError("Instance inventory unavailable") from e

    async def get_machine(self, owner_id: UUID, machine_id: UUID) -> Machine:
        try:
            async with self.sessionmaker() as session:
                machine = await session.get(Machine, machine_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load machine {machine_id}: {e}")
            raise BackendUnavailableError("Instance inventory unavailable") from e
        if machine is None or machine.owner_id != owner_id:
            raise NotFoundError(f"{machine_id} not found")
        return machine

    async def set_role_tags(self, owner_id: UUID, machine_id: UUID, role_ids: Sequence[UUID]) -> List[str]:
        return await self._write_role_tags(owner_id, machine_id, [str(r) for r in role_ids])

    async def clear_role_tags(self, owner_id: UUID, machine_id: UUID) -> List[str]:
        return await self._write_role_tags(owner_id, machine_id, [])

    async def _write_role_tags(self, owner_id: UUID, machine_id: UUID, role_tags: List[str]) -> List[str]:
        async with self.sessionmaker() as session:
            machine = await session.get(Machine, machine_id)
            if machine is None or machine.owner_id != owner_id:
                raise NotFoundError(f"{machine_id} not found")
            if machine.state == MachineState.DESTROYED:
                raise ValueError(f"Machine {machine_id} has been destroyed")
            machine.role_tags = role_tags
            await session.commit()
            logger.info(f"Set role tags on machine {machine_id}: {role_tags}")
            return role_tags
