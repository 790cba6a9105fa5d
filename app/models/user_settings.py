from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from app.database import Base


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # Preferências (endpoints de perfil)
    daily_goal = Column(Numeric(10, 2), nullable=False, default=64)
    weekly_goal = Column(Numeric(10, 2), nullable=True)
    hand_size = Column(String(20), nullable=False, default="medium")  # small | medium | large
    sip_size = Column(String(20), nullable=False, default="medium")  # small | medium | large
    water_unit = Column(String(10), nullable=False, default="oz")
    timezone = Column(String(64), nullable=False, default="America/New_York")

    # Limpeza de retenção
    last_cleanup_date = Column(Date, nullable=True)

    # Contadores dos limites diários
    image_uploads_today = Column(Integer, nullable=False, default=0)
    text_descriptions_today = Column(Integer, nullable=False, default=0)
    manual_adds_today = Column(Integer, nullable=False, default=0)
    last_limit_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="settings")
