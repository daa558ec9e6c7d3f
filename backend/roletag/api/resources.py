"""Replace the role tags of any resource, virtual or physical."""
import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status

from roletag.api.deps import Context
from roletag.errors import NotFoundError
from roletag.schemas.resource import ResourceRoleTagsResponse, RoleTagUpdate
from roletag.services.references import is_uuid
from roletag.services.resources import VALID_RESOURCES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Role Tags"])


def _check_resource_name(resource_name: str) -> None:
    if resource_name not in VALID_RESOURCES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_name} is not a valid resource",
        )


async def _replace(ctx: Context, body: RoleTagUpdate, response: Response) -> ResourceRoleTagsResponse:
    name, applied = await ctx.binding.save_resource(body.role_tag)
    ctx.set_role_tag_header(response)
    logger.debug(f"PUT {ctx.request.url.path} -> {{'name': {name!r}, 'role-tag': {applied}}}")
    return ResourceRoleTagsResponse(name=name, role_tag=applied)


@router.put("/{account}", response_model=ResourceRoleTagsResponse)
async def replace_account_role_tags(body: RoleTagUpdate, ctx: Context, response: Response):
    await ctx.load_resource()
    return await _replace(ctx, body, response)


@router.put("/{account}/{resource_name}", response_model=ResourceRoleTagsResponse)
async def replace_resources_role_tags(resource_name: str, body: RoleTagUpdate, ctx: Context, response: Response):
    """Tag a whole collection, e.g. "the list of users"."""
    _check_resource_name(resource_name)
    await ctx.load_resource()
    return await _replace(ctx, body, response)


async def _item_id(ctx: Context, resource_name: str, resource_id: str):
    """Identifier the item is canonically named by, whatever it was addressed with."""
    account_id = ctx.account.id
    if resource_name == "roles":
        return (await ctx.directory.get_role(account_id, resource_id)).id
    if resource_name == "policies":
        return (await ctx.directory.get_policy(account_id, resource_id)).id
    if resource_name == "users":
        return (await ctx.directory.get_user(account_id, resource_id)).id
    return resource_id


@router.put("/{account}/{resource_name}/{resource_id}", response_model=ResourceRoleTagsResponse)
async def replace_resource_role_tags(
    resource_name: str, resource_id: str, body: RoleTagUpdate, ctx: Context, response: Response
):
    """Tag an individual item. Machines keep their tags on the machine itself."""
    _check_resource_name(resource_name)
    if resource_name == "machines":
        if not is_uuid(resource_id):
            raise NotFoundError(f"{resource_id} not found")
        machine = await ctx.inventory.get_machine(ctx.account.id, UUID(resource_id))
        await ctx.load_resource(item_id=machine.id, machine=machine)
    else:
        await ctx.load_resource(item_id=await _item_id(ctx, resource_name, resource_id))
    return await _replace(ctx, body, response)


@router.put("/{account}/users/{user}/keys", response_model=ResourceRoleTagsResponse)
async def replace_user_keys_resources_role_tags(user: str, body: RoleTagUpdate, ctx: Context, response: Response):
    sub_user = await ctx.directory.get_user(ctx.account.id, user)
    await ctx.load_resource(item_id=sub_user.id)
    return await _replace(ctx, body, response)


@router.put("/{account}/users/{user}/keys/{key}", response_model=ResourceRoleTagsResponse)
async def replace_user_keys_resource_role_tags(
    user: str, key: str, body: RoleTagUpdate, ctx: Context, response: Response
):
    sub_user = await ctx.directory.get_user(ctx.account.id, user)
    await ctx.load_resource(item_id=sub_user.id)
    return await _replace(ctx, body, response)
