"""
Machines. Only reading is served here; their role tags are replaced through
the generic role-tag routes.
"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Response

from roletag.api.deps import Context
from roletag.errors import NotFoundError
from roletag.schemas.machine import MachineResponse
from roletag.services.references import ids, is_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/{account}/machines", tags=["Machines"])


@router.get("", response_model=List[MachineResponse])
async def list_machines(ctx: Context, response: Response):
    await ctx.load_resource()
    ctx.set_role_tag_header(response)
    machines = await ctx.inventory.list_machines(ctx.account.id)

    # One lookup for the role tags of every machine listed
    role_ids = list(dict.fromkeys(t for m in machines for t in (m.role_tags or []) if is_uuid(str(t))))
    by_id = {}
    if role_ids:
        roles = await ctx.membership.roles.resolve(ctx.account.id, ids(role_ids), hydrate=False)
        by_id = {str(r.id): r.name for r in roles}

    result = []
    for machine in machines:
        item = MachineResponse.model_validate(machine)
        item.role_tag = [by_id.get(str(t), t) for t in machine.role_tags or []]
        result.append(item)
    return result


@router.get("/{machine}", response_model=MachineResponse)
async def get_machine(machine: str, ctx: Context, response: Response):
    if not is_uuid(machine):
        raise NotFoundError(f"{machine} not found")
    entry = await ctx.inventory.get_machine(ctx.account.id, UUID(machine))
    # Rewrites entry.role_tags to role names
    await ctx.load_resource(item_id=entry.id, machine=entry)
    ctx.set_role_tag_header(response)
    return MachineResponse.model_validate(entry)
