"""
Schemas Pydantic para entradas de água
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any


class WaterEntryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ounces: Any = None
    classification: Optional[str] = Field(default=None, max_length=50)
    liquid_type: Optional[str] = Field(default="water", alias="liquidType", max_length=100)
    servings: Optional[int] = Field(default=1, ge=1)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    description: Optional[str] = Field(default=None, max_length=1000)
    created_from_favorite: bool = Field(default=False, alias="createdFromFavorite")
    is_manual: bool = Field(default=False, alias="isManual")
