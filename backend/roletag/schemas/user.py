from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


class SubUserCreate(BaseModel):
    login: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None


class SubUserResponse(BaseModel):
    id: UUID
    login: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubUserMembershipResponse(SubUserResponse):
    """Sub-user with the names of the roles it belongs to."""
    roles: List[str] = []
    default_roles: List[str] = []


class AccountResponse(BaseModel):
    id: UUID
    login: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
