from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel


class PolicyCreate(BaseModel):
    name: str
    rules: Union[List[str], str]
    description: Optional[str] = None


class PolicyUpdate(BaseModel):
    name: Optional[str] = None
    rules: Optional[Union[List[str], str]] = None
    description: Optional[str] = None


class PolicyResponse(BaseModel):
    id: UUID
    name: str
    rules: List[str]
    description: Optional[str] = None

    class Config:
        from_attributes = True
