"""Role request bodies and the two versioned role shapes."""
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from roletag.schemas.membership import Role


class MemberSpec(BaseModel):
    type: str = "subuser"  # 'subuser' or 'account'
    login: str
    default: bool = False


class RoleCreate(BaseModel):
    name: str
    members: List[Union[str, MemberSpec]] = []
    default_members: List[str] = []
    policies: List[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    members: Optional[List[Union[str, MemberSpec]]] = None
    default_members: Optional[List[str]] = None
    policies: Optional[List[str]] = None


# Response shapes

class LegacyRoleResponse(BaseModel):
    """Pre-9 shape: sub-user logins only, cross-account members dropped."""
    id: UUID
    name: str
    members: List[str]
    default_members: List[str]
    policies: List[str]


class MemberResponse(BaseModel):
    type: str
    id: UUID
    login: str
    default: bool


class PolicyRef(BaseModel):
    id: UUID
    name: str


class RoleResponse(BaseModel):
    id: UUID
    name: str
    members: List[MemberResponse]
    policies: List[PolicyRef]


def legacy_role(role: Role) -> LegacyRoleResponse:
    subusers = [m for m in role.members if m.kind == "subuser"]
    return LegacyRoleResponse(
        id=role.id,
        name=role.name,
        members=[m.login for m in subusers],
        default_members=[m.login for m in subusers if m.default],
        policies=[p.name for p in role.policies],
    )


def structured_role(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        members=[
            MemberResponse(type=m.kind, id=m.id, login=m.login, default=m.default)
            for m in role.members
        ],
        policies=[PolicyRef(id=p.id, name=p.name) for p in role.policies],
    )


def serialize_role(role: Role, api_version: int, structured_since: int) -> dict:
    if api_version < structured_since:
        return legacy_role(role).model_dump(mode="json")
    return structured_role(role).model_dump(mode="json")
