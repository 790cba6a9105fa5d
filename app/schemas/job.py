"""
Schemas Pydantic para a fila de jobs
"""
from pydantic import BaseModel, Field
from typing import Optional


class ProcessJobsRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, alias="batchSize", ge=1, le=500)
    max_batches: Optional[int] = Field(default=None, alias="maxBatches", ge=1, le=1000)


class CleanupJobsRequest(BaseModel):
    reindex: bool = False
