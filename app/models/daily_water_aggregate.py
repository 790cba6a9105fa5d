from sqlalchemy import Column, Numeric, Date, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.sql import func
import uuid
from app.database import Base


class DailyWaterAggregate(Base):
    __tablename__ = "daily_water_aggregates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    total_ounces = Column(Numeric(10, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "entry_date", name="uq_daily_water_aggregates_user_date"),
    )
