from roletag.schemas.membership import AccountInfo, User, Policy, Member, Role
from roletag.schemas.role import RoleCreate, RoleUpdate, RoleResponse, LegacyRoleResponse, serialize_role
from roletag.schemas.policy import PolicyCreate, PolicyUpdate, PolicyResponse
from roletag.schemas.user import SubUserCreate, SubUserResponse, SubUserMembershipResponse, AccountResponse
from roletag.schemas.resource import RoleTagUpdate, ResourceRoleTagsResponse
from roletag.schemas.machine import MachineResponse

__all__ = [
    "AccountInfo", "User", "Policy", "Member", "Role",
    "RoleCreate", "RoleUpdate", "RoleResponse", "LegacyRoleResponse", "serialize_role",
    "PolicyCreate", "PolicyUpdate", "PolicyResponse",
    "SubUserCreate", "SubUserResponse", "SubUserMembershipResponse", "AccountResponse",
    "RoleTagUpdate", "ResourceRoleTagsResponse",
    "MachineResponse",
]
