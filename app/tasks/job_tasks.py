"""
Tasks do Celery para a fila de jobs de análise
"""
import asyncio
import logging
from app.celery_app import celery_app
from app.database import SessionLocal
from app.database.redis import close_redis
from app.services.job_queue import cleanup_jobs, process_pending_jobs
from app.services.llm_client import close_llm_client

logger = logging.getLogger(__name__)


async def _poll_jobs(batch_size: int = None, max_batches: int = None):
    # cada task roda num event loop novo; clientes async não podem sobreviver a ele
    try:
        return await process_pending_jobs(batch_size=batch_size, max_batches=max_batches)
    finally:
        await close_llm_client()
        await close_redis()


@celery_app.task(name="process_jobs_task", bind=True, max_retries=3)
def process_jobs_task(self, batch_size: int = None, max_batches: int = None):
    """
    Drena a fila de jobs pending.

    Cada job abre e fecha a própria sessão dentro de process_pending_jobs.
    """
    try:
        summary = asyncio.run(_poll_jobs(batch_size=batch_size, max_batches=max_batches))
        if summary["processed"]:
            logger.info(
                f"Job poll finished: processed={summary['processed']}, "
                f"batches={summary['batches']}, duration={summary['duration']}ms"
            )
        summary.pop("jobs", None)
        return summary
    except Exception as e:
        logger.error(f"Error processing job queue: {e}", exc_info=True)
        # Retry com backoff exponencial
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(name="cleanup_jobs_task", bind=True, max_retries=3)
def cleanup_jobs_task(self, reindex: bool = False):
    """Varredura periódica da tabela jobs."""
    db = SessionLocal()
    try:
        return cleanup_jobs(db, reindex=reindex)
    except Exception as e:
        logger.error(f"Error cleaning up jobs: {e}", exc_info=True)
        db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)
    finally:
        db.close()
