"""
Router dos endpoints de worker (processamento e limpeza da fila de jobs)

Os mesmos serviços rodam pelo Celery beat; os endpoints permitem disparo
externo (cron, testes de carga).
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.schemas.job import CleanupJobsRequest, ProcessJobsRequest
from app.services.job_queue import cleanup_jobs, process_pending_jobs

logger = logging.getLogger(__name__)
router = APIRouter()


async def verify_worker_secret(x_worker_secret: Optional[str] = Header(None)):
    """Exige X-Worker-Secret apenas quando WORKER_SECRET está configurado."""
    if settings.WORKER_SECRET and x_worker_secret != settings.WORKER_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


@router.post("/worker/process-jobs", dependencies=[Depends(verify_worker_secret)])
async def process_jobs(body: Optional[ProcessJobsRequest] = None):
    try:
        return await process_pending_jobs(
            batch_size=body.batch_size if body else None,
            max_batches=body.max_batches if body else None,
        )
    except Exception as e:
        logger.error(f"Worker error processing jobs: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Worker failed: {str(e)}"
        )


@router.post("/worker/cleanup-jobs", dependencies=[Depends(verify_worker_secret)])
async def cleanup_jobs_endpoint(
    body: Optional[CleanupJobsRequest] = None,
    db: Session = Depends(get_db)
):
    try:
        summary = cleanup_jobs(db, reindex=body.reindex if body else False)
        return {"success": True, "message": "Job cleanup completed", **summary}
    except Exception as e:
        logger.error(f"Worker error cleaning jobs: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Cleanup failed: {str(e)}"
        )
