from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, Boolean, Text, ForeignKey, Uuid, Index
from sqlalchemy.sql import func
import uuid
from app.database import Base


class WaterEntry(Base):
    __tablename__ = "water_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ounces = Column(Numeric(10, 2), nullable=False)
    entry_date = Column(Date, nullable=False)  # Dia local do usuário, não UTC
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    classification = Column(String(50), nullable=False, default="reusable-bottle")
    liquid_type = Column(String(50), nullable=False, default="water")
    image_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    servings = Column(Integer, nullable=False, default=1)
    created_from_favorite = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_water_entries_user_date", "user_id", "entry_date"),
    )
