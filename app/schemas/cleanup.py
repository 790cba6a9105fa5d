from pydantic import BaseModel


class CleanupRequest(BaseModel):
    force: bool = False
