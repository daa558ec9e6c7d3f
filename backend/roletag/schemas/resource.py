from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleTagUpdate(BaseModel):
    """Body of the replace-role-tags routes: ``{"role-tag": ["admin", "ops"]}``.

    Leaving ``role-tag`` out keeps the current tags (or, for sub-users, applies
    their active roles); an empty list clears them.
    """
    model_config = ConfigDict(populate_by_name=True)

    role_tag: Optional[List[str]] = Field(default=None, alias="role-tag")


class ResourceRoleTagsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    role_tag: List[str] = Field(default_factory=list, alias="role-tag")
