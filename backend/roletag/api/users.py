"""Sub-users of an account."""
import logging
from typing import List

from fastapi import APIRouter, Response, status

from roletag.api.deps import Context
from roletag.models.account import SubUser
from roletag.schemas.user import SubUserCreate, SubUserMembershipResponse, SubUserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/{account}/users", tags=["Users"])


@router.get("", response_model=List[SubUserResponse])
async def list_users(ctx: Context, response: Response):
    await ctx.load_resource()
    ctx.set_role_tag_header(response)
    return await ctx.directory.list_users(ctx.account.id)


@router.get("/{user}", response_model=SubUserMembershipResponse)
async def get_user(user: str, ctx: Context, response: Response, membership: bool = False):
    """Get a sub-user by login or UUID. ``membership=true`` adds its roles."""
    entry = await ctx.directory.get_user(ctx.account.id, user)
    await ctx.load_resource(item_id=entry.id)
    ctx.set_role_tag_header(response)

    result = SubUserMembershipResponse.model_validate(entry)
    if membership:
        roles, default_roles = await ctx.membership.roles.memberships(ctx.account.id, entry.id)
        result.roles = [r.name for r in roles]
        result.default_roles = [r.name for r in default_roles]
    return result


@router.post("", response_model=SubUserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: SubUserCreate, ctx: Context, response: Response):
    await ctx.load_resource()
    entry = await ctx.directory.add_entry(SubUser(
        account_id=ctx.account.id,
        login=user_data.login,
        email=user_data.email,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        company=user_data.company,
    ))
    logger.info(f"Created sub-user {entry.login} ({entry.id}) for {ctx.account.login}")

    ctx.binding.rebind(ctx.item_name(entry.id))
    await ctx.binding.save_resource(ctx.requested_role_tags())
    ctx.set_role_tag_header(response)

    response.headers["Location"] = f"/{ctx.account.login}/users/{entry.id}"
    return entry


@router.delete("/{user}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user: str, ctx: Context):
    entry = await ctx.directory.get_user(ctx.account.id, user)
    await ctx.load_resource(item_id=entry.id)
    await ctx.directory.delete_entry(SubUser, entry.id)
    logger.debug(f"DELETE {ctx.request.url.path} -> ok")
    await ctx.binding.delete_resource(succeeded=True)
    return None
