from sqlalchemy import Column, String, Numeric, DateTime, Uuid
from sqlalchemy.sql import func
import uuid
from app.database import Base


class BarcodeCache(Base):
    __tablename__ = "barcode_cache"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    barcode = Column(String(64), unique=True, nullable=False, index=True)
    product_name = Column(String(255), nullable=True)
    ounces = Column(Numeric(10, 2), nullable=False)  # Capacidade de UM recipiente
    liquid_type = Column(String(50), nullable=True)
    source = Column(String(50), nullable=False, default="GPT Vision")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
