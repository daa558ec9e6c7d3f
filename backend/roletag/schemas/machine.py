from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from roletag.models.machine import MachineState


class MachineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    alias: Optional[str] = None
    state: MachineState
    # Role names once the machine's role tags have been loaded
    role_tag: List[str] = Field(
        default_factory=list,
        serialization_alias="role-tag",
        validation_alias=AliasChoices("role_tags", "role-tag", "role_tag"),
    )
    created_at: Optional[datetime] = None
