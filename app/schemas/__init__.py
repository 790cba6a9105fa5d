from app.schemas.analysis import AnalyzeImageRequest, AnalyzeTextRequest
from app.schemas.water import WaterEntryCreate
from app.schemas.cleanup import CleanupRequest
from app.schemas.user import UserGoalRequest, UpdateGoalRequest
from app.schemas.favorite import FavoriteCreate, UnfavoriteCopyRequest
from app.schemas.job import ProcessJobsRequest, CleanupJobsRequest

__all__ = [
    "AnalyzeImageRequest",
    "AnalyzeTextRequest",
    "WaterEntryCreate",
    "CleanupRequest",
    "UserGoalRequest",
    "UpdateGoalRequest",
    "FavoriteCreate",
    "UnfavoriteCopyRequest",
    "ProcessJobsRequest",
    "CleanupJobsRequest",
]
