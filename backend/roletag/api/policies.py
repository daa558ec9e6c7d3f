import json
import logging
from typing import List, Union

from fastapi import APIRouter, Response, status

from roletag.api.deps import Context
from roletag.models.policy import Policy
from roletag.schemas.policy import PolicyCreate, PolicyResponse, PolicyUpdate
from roletag.services.membership import translate_policy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/{account}/policies", tags=["Policies"])


def _encode_rules(rules: Union[List[str], str]) -> str:
    if isinstance(rules, list):
        return json.dumps(rules)
    return rules


def _response(entry) -> PolicyResponse:
    policy = translate_policy(entry)
    return PolicyResponse(
        id=policy.id, name=policy.name, rules=policy.rules, description=policy.description
    )


@router.get("", response_model=List[PolicyResponse])
async def list_policies(ctx: Context, response: Response):
    await ctx.load_resource()
    ctx.set_role_tag_header(response)
    return [_response(e) for e in await ctx.directory.list_policies(ctx.account.id)]


@router.get("/{policy}", response_model=PolicyResponse)
async def get_policy(policy: str, ctx: Context, response: Response):
    entry = await ctx.directory.get_policy(ctx.account.id, policy)
    await ctx.load_resource(item_id=entry.id)
    ctx.set_role_tag_header(response)
    return _response(entry)


@router.post("", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(policy_data: PolicyCreate, ctx: Context, response: Response):
    await ctx.load_resource()
    entry = await ctx.directory.add_entry(Policy(
        account_id=ctx.account.id,
        name=policy_data.name,
        rules=_encode_rules(policy_data.rules),
        description=policy_data.description,
    ))
    logger.info(f"Created policy {entry.name} ({entry.id}) for {ctx.account.login}")

    ctx.binding.rebind(ctx.item_name(entry.id))
    await ctx.binding.save_resource(ctx.requested_role_tags())
    ctx.set_role_tag_header(response)

    response.headers["Location"] = f"/{ctx.account.login}/policies/{entry.id}"
    return _response(entry)


@router.post("/{policy}", response_model=PolicyResponse)
async def update_policy(policy: str, policy_data: PolicyUpdate, ctx: Context, response: Response):
    entry = await ctx.directory.get_policy(ctx.account.id, policy)
    await ctx.load_resource(item_id=entry.id)

    changes = {}
    if policy_data.name is not None:
        changes["name"] = policy_data.name
    if policy_data.rules is not None:
        changes["rules"] = _encode_rules(policy_data.rules)
    if policy_data.description is not None:
        changes["description"] = policy_data.description or None
    if changes:
        entry = await ctx.directory.modify_entry(Policy, entry.id, changes)

    role_tags = ctx.requested_role_tags()
    if role_tags is not None:
        await ctx.binding.save_resource(role_tags)
    ctx.set_role_tag_header(response)
    return _response(entry)


@router.delete("/{policy}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_policy(policy: str, ctx: Context):
    entry = await ctx.directory.get_policy(ctx.account.id, policy)
    await ctx.load_resource(item_id=entry.id)
    await ctx.directory.delete_entry(Policy, entry.id)
    logger.debug(f"DELETE {ctx.request.url.path} -> ok")
    await ctx.binding.delete_resource(succeeded=True)
    return None
