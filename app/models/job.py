from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Uuid, JSON, Index
from sqlalchemy.sql import func
import uuid
from app.database import Base

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETE = "complete"
JOB_ERROR = "error"

JOB_STATUSES = (JOB_PENDING, JOB_PROCESSING, JOB_COMPLETE, JOB_ERROR)


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    job_type = Column(String(50), nullable=False)  # analyze_water | analyze_barcode | analyze_text
    status = Column(String(20), nullable=False, default=JOB_PENDING)
    payload = Column(JSON, nullable=False, default=dict)
    result = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_jobs_status_created_at", "status", "created_at"),
    )
