from app.database import Base
from app.models.user import User, AuthSession
from app.models.user_settings import UserSettings
from app.models.water_entry import WaterEntry
from app.models.daily_water_aggregate import DailyWaterAggregate
from app.models.weekly_summary import WeeklySummary
from app.models.barcode_cache import BarcodeCache
from app.models.job import Job
from app.models.user_favorite import UserFavorite

__all__ = [
    "Base",
    "User",
    "AuthSession",
    "UserSettings",
    "WaterEntry",
    "DailyWaterAggregate",
    "WeeklySummary",
    "BarcodeCache",
    "Job",
    "UserFavorite",
]
