"""
Schemas Pydantic para favoritos
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from uuid import UUID


class FavoriteCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    water_entry_id: Optional[UUID] = Field(default=None, alias="waterEntryId")


class UnfavoriteCopyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    copy_entry_id: Optional[UUID] = Field(default=None, alias="copyEntryId")
