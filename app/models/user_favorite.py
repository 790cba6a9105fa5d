from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid
from app.database import Base


class UserFavorite(Base):
    """Cópia permanente de uma entrada; sobrevive à limpeza de 40 dias."""
    __tablename__ = "user_favorites"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ounces = Column(Numeric(10, 2), nullable=False)
    classification = Column(String(50), nullable=False, default="reusable-bottle")
    liquid_type = Column(String(50), nullable=False, default="water")
    image_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    servings = Column(Integer, nullable=False, default=1)
    favorite_order = Column(Integer, nullable=True)
    # Sem FK: a entrada de origem é apagada pela limpeza
    source_entry_id = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
