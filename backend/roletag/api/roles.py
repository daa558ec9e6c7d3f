"""
Account roles.

Members are given as sub-user logins (or structured member objects, which
can also name whole accounts), policies by name. Both are stored as DNs and
translated back when a role is rendered; which shape is rendered depends on
the requested API version.
"""
import logging
from typing import List, Tuple

from fastapi import APIRouter, Response, status

from roletag.api.deps import Context
from roletag.errors import NotFoundError, UnresolvedReferenceError
from roletag.models.role import Role
from roletag.schemas.role import MemberSpec, RoleCreate, RoleUpdate, serialize_role
from roletag.services.membership import translate_role
from roletag.services.references import account_dn, names, sub_user_dn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/{account}/roles", tags=["Roles"])


async def _member_dns(ctx: Context, members: List, default_members: List[str]) -> Tuple[List[str], List[str]]:
    """Translate member logins into (member DNs, default member DNs)."""
    specs = [m if isinstance(m, MemberSpec) else MemberSpec(login=m) for m in members]
    specs += [MemberSpec(login=login, default=True) for login in default_members]

    logins = [s.login for s in specs if s.type == "subuser"]
    users = {}
    if logins:
        found = await ctx.membership.users.resolve(ctx.account.id, names(logins))
        users = {u.login: u for u in found}
        missing = [login for login in dict.fromkeys(logins) if login not in users]
        if missing:
            raise UnresolvedReferenceError("User", missing)

    accounts = {}
    missing_accounts = []
    for spec in specs:
        if spec.type != "account" or spec.login in accounts:
            continue
        try:
            accounts[spec.login] = await ctx.directory.get_account(spec.login)
        except NotFoundError:
            missing_accounts.append(spec.login)
    if missing_accounts:
        raise UnresolvedReferenceError("Account", missing_accounts)

    member_dns, default_dns = [], []
    for spec in specs:
        if spec.type == "account":
            dn = account_dn(accounts[spec.login].id)
        else:
            dn = sub_user_dn(ctx.account.id, users[spec.login].id)
        if dn not in member_dns:
            member_dns.append(dn)
        if spec.default and dn not in default_dns:
            default_dns.append(dn)
    return member_dns, default_dns


async def _policy_dns(ctx: Context, policy_names: List[str]) -> List[str]:
    if not policy_names:
        return []
    policies = await ctx.membership.policies.resolve(ctx.account.id, names(policy_names))
    by_name = {p.name: p for p in policies}
    missing = [n for n in dict.fromkeys(policy_names) if n not in by_name]
    if missing:
        raise UnresolvedReferenceError("Policy", missing)
    return [by_name[n].dn for n in dict.fromkeys(policy_names)]


async def _render(ctx: Context, entry) -> dict:
    role = translate_role(entry)
    await ctx.membership.roles.hydrate(ctx.account.id, [role])
    return serialize_role(role, ctx.api_version, ctx.structured_since)


@router.get("")
async def list_roles(ctx: Context, response: Response):
    await ctx.load_resource()
    roles = await ctx.membership.roles.resolve(ctx.account.id, [])
    ctx.set_role_tag_header(response)
    return [serialize_role(r, ctx.api_version, ctx.structured_since) for r in roles]


@router.get("/{role}")
async def get_role(role: str, ctx: Context, response: Response):
    entry = await ctx.directory.get_role(ctx.account.id, role)
    await ctx.load_resource(item_id=entry.id)
    ctx.set_role_tag_header(response)
    return await _render(ctx, entry)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_role(role_data: RoleCreate, ctx: Context, response: Response):
    await ctx.load_resource()
    member_dns, default_dns = await _member_dns(ctx, role_data.members, role_data.default_members)
    policy_dns = await _policy_dns(ctx, role_data.policies)

    entry = await ctx.directory.add_entry(Role(
        account_id=ctx.account.id,
        name=role_data.name,
        members=member_dns,
        default_members=default_dns,
        policies=policy_dns,
    ))
    logger.info(f"Created role {entry.name} ({entry.id}) for {ctx.account.login}")

    # Tag the new role, not the collection
    ctx.binding.rebind(ctx.item_name(entry.id))
    await ctx.binding.save_resource(ctx.requested_role_tags())
    ctx.set_role_tag_header(response)

    response.headers["Location"] = f"/{ctx.account.login}/roles/{entry.id}"
    return await _render(ctx, entry)


@router.post("/{role}")
async def update_role(role: str, role_data: RoleUpdate, ctx: Context, response: Response):
    entry = await ctx.directory.get_role(ctx.account.id, role)
    await ctx.load_resource(item_id=entry.id)

    changes = {}
    if role_data.name is not None:
        changes["name"] = role_data.name
    if role_data.members is not None:
        changes["members"], changes["default_members"] = await _member_dns(
            ctx, role_data.members, role_data.default_members or []
        )
    elif role_data.default_members is not None:
        _, default_dns = await _member_dns(ctx, [], role_data.default_members)
        changes["default_members"] = default_dns
        changes["members"] = list(dict.fromkeys(list(entry.members or []) + default_dns))
    if role_data.policies is not None:
        changes["policies"] = await _policy_dns(ctx, role_data.policies)

    if changes:
        entry = await ctx.directory.modify_entry(Role, entry.id, changes)

    role_tags = ctx.requested_role_tags()
    if role_tags is not None:
        await ctx.binding.save_resource(role_tags)
    ctx.set_role_tag_header(response)
    return await _render(ctx, entry)


@router.delete("/{role}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(role: str, ctx: Context):
    entry = await ctx.directory.get_role(ctx.account.id, role)
    await ctx.load_resource(item_id=entry.id)
    await ctx.directory.delete_entry(Role, entry.id)
    logger.debug(f"DELETE {ctx.request.url.path} -> ok")
    await ctx.binding.delete_resource(succeeded=True)
    return None
