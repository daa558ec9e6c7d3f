"""Resolved entities handed out by the membership resolvers."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AccountInfo(BaseModel):
    """Public identity of an account, as returned by a cross-account lookup."""
    id: UUID
    login: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class User(BaseModel):
    id: UUID
    login: str
    email: str
    account_id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Policy(BaseModel):
    id: UUID
    name: str
    account_id: UUID
    rules: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    dn: str


class Member(BaseModel):
    """A hydrated role member: a sub-user of the account or a whole account."""
    kind: str  # 'subuser' or 'account'
    id: UUID
    login: str
    default: bool = False


class Role(BaseModel):
    id: UUID
    name: str
    account_id: UUID
    dn: str
    members: List[Member] = Field(default_factory=list)
    policies: List[Policy] = Field(default_factory=list)

    # Stored DNs, kept for re-hydration and membership checks
    member_dns: List[str] = Field(default_factory=list)
    default_member_dns: List[str] = Field(default_factory=list)
    policy_dns: List[str] = Field(default_factory=list)

    @property
    def default_members(self) -> List[Member]:
        return [m for m in self.members if m.default]
