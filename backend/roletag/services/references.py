"""
Reference variants and hierarchical path (DN) formats.

Roles, policies and users can be referenced by display name, by UUID or by
the DN the directory stores. Every resolver takes a list of references and
normalizes each variant to the lookup the store needs.
"""
import re
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel

ACCOUNT_FMT = "uuid={account}, ou=users, o=smartdc"
SUB_USER_FMT = "uuid={user}, " + ACCOUNT_FMT
ROLE_FMT = "role-uuid={role}, " + ACCOUNT_FMT
POLICY_FMT = "policy-uuid={policy}, " + ACCOUNT_FMT
RESOURCE_FMT = "resource-uuid={resource}, " + ACCOUNT_FMT

UUID_RE = re.compile(r"^[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$")
SUB_USER_DN_RE = re.compile(r"^uuid=([^,]+),\s*uuid=([^,]+),\s*ou=users,\s*o=smartdc$")
ACCOUNT_DN_RE = re.compile(r"^uuid=([^,]+),\s*ou=users,\s*o=smartdc$")
ROLE_DN_RE = re.compile(r"^role-uuid=([^,]+),")
POLICY_DN_RE = re.compile(r"^policy-uuid=([^,]+),")


class ByName(BaseModel):
    model_config = {"frozen": True}
    value: str


class ById(BaseModel):
    model_config = {"frozen": True}
    value: UUID


class ByPath(BaseModel):
    model_config = {"frozen": True}
    value: str


Reference = Union[ByName, ById, ByPath]


def account_dn(account_id) -> str:
    return ACCOUNT_FMT.format(account=account_id)


def sub_user_dn(account_id, user_id) -> str:
    return SUB_USER_FMT.format(user=user_id, account=account_id)


def role_dn(account_id, role_id) -> str:
    return ROLE_FMT.format(role=role_id, account=account_id)


def policy_dn(account_id, policy_id) -> str:
    return POLICY_FMT.format(policy=policy_id, account=account_id)


def is_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value.lower()))


def names(values) -> list:
    return [ByName(value=v) for v in values]


def ids(values) -> list:
    return [ById(value=UUID(str(v))) for v in values]


def paths(values) -> list:
    return [ByPath(value=v) for v in values]


def name_or_id(value: str) -> Reference:
    """Route parameters may carry either a UUID or a display name."""
    if is_uuid(value):
        return ById(value=UUID(value))
    return ByName(value=value)


def _leading_uuid(pattern: re.Pattern, dn: str) -> Optional[UUID]:
    match = pattern.match(dn)
    if match is None:
        return None
    try:
        return UUID(match.group(1))
    except ValueError:
        return None


def role_id_from_dn(dn: str) -> Optional[UUID]:
    return _leading_uuid(ROLE_DN_RE, dn)


def policy_id_from_dn(dn: str) -> Optional[UUID]:
    return _leading_uuid(POLICY_DN_RE, dn)


def user_id_from_dn(dn: str) -> Optional[UUID]:
    return _leading_uuid(SUB_USER_DN_RE, dn)


class MemberRef(BaseModel):
    """A parsed role member: exactly one of sub-user, account or plain id."""
    model_config = {"frozen": True}

    kind: str  # 'subuser', 'account' or 'id'
    id: UUID
    account_id: Optional[UUID] = None


def parse_member(value: str) -> Optional[MemberRef]:
    """
    Classify a stored member entry.

    The sub-user form is tested before the account form; an account DN is a
    suffix of every sub-user DN, so the order keeps them apart.
    """
    match = SUB_USER_DN_RE.match(value)
    if match is not None:
        try:
            return MemberRef(kind="subuser", id=UUID(match.group(1)), account_id=UUID(match.group(2)))
        except ValueError:
            return None
    match = ACCOUNT_DN_RE.match(value)
    if match is not None:
        try:
            return MemberRef(kind="account", id=UUID(match.group(1)))
        except ValueError:
            return None
    if is_uuid(value):
        return MemberRef(kind="id", id=UUID(value))
    return None
