from sqlalchemy import Column, Integer, Numeric, Date, DateTime, ForeignKey, Uuid, JSON, UniqueConstraint
from sqlalchemy.sql import func
import uuid
from app.database import Base


class WeeklySummary(Base):
    __tablename__ = "weekly_summaries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False)  # Segunda-feira
    total_ounces = Column(Numeric(10, 2), nullable=False, default=0)
    days_with_data = Column(Integer, nullable=False, default=0)

    # Distribuição por horário (hora local do usuário)
    early_morning_oz = Column(Numeric(10, 2), nullable=False, default=0)
    morning_oz = Column(Numeric(10, 2), nullable=False, default=0)
    afternoon_oz = Column(Numeric(10, 2), nullable=False, default=0)
    evening_oz = Column(Numeric(10, 2), nullable=False, default=0)
    night_oz = Column(Numeric(10, 2), nullable=False, default=0)

    liquid_types = Column(JSON, nullable=False, default=dict)  # {"water": 48.0, "coffee": 8.0}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="uq_weekly_summaries_user_week"),
    )
