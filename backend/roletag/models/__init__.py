from roletag.models.base import Base
from roletag.models.account import Account, SubUser
from roletag.models.policy import Policy
from roletag.models.role import Role
from roletag.models.resource import AccountResource
from roletag.models.machine import Machine, MachineState

__all__ = [
    "Base",
    "Account", "SubUser",
    "Policy",
    "Role",
    "AccountResource",
    "Machine", "MachineState",
]
