"""
Schemas Pydantic para os endpoints de análise (imagem, código de barras, texto)
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Union


class AnalyzeImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base64: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    percentage: Optional[float] = Field(default=None, ge=0, le=100, description="Percentual do recipiente consumido")
    duration: Optional[Union[str, float]] = Field(default=None, description="Duração bebendo: 12 ou '12 seconds'")
    servings: Optional[int] = Field(default=1, ge=1)
    liquid_type: Optional[str] = Field(default=None, alias="liquidType", max_length=100)


class AnalyzeTextRequest(BaseModel):
    description: Optional[str] = Field(default=None, max_length=1000)
