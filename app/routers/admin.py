"""
Router administrativo: observabilidade da fila de jobs
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.services.job_queue import get_job_stats, get_storage_breakdown

logger = logging.getLogger(__name__)
router = APIRouter()


async def verify_admin_key(x_admin_key: Optional[str] = Header(None)):
    if settings.ADMIN_API_KEY and x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


@router.get("/admin/job-stats", dependencies=[Depends(verify_admin_key)])
async def job_stats(db: Session = Depends(get_db)):
    """Contagens por status, candidatos à limpeza, jobs recentes e vazão."""
    return get_job_stats(db)


@router.get("/admin/storage-breakdown", dependencies=[Depends(verify_admin_key)])
async def storage_breakdown(db: Session = Depends(get_db)):
    return get_storage_breakdown(db)
