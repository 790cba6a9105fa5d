"""
Fila de jobs baseada na tabela `jobs`.

pending -> processing -> complete | error. Workers fazem polling, reivindicam
lotes com FOR UPDATE SKIP LOCKED (no PostgreSQL) e processam cada lote em
paralelo, cada job com sua própria sessão. Jobs presos em processing são
devolvidos para pending pela varredura de limpeza.
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.config import settings
from app.database import SessionLocal
from app.models.job import (
    Job,
    JOB_COMPLETE,
    JOB_ERROR,
    JOB_PENDING,
    JOB_PROCESSING,
    JOB_STATUSES,
)
from app.services.analysis_errors import AnalysisError
from app.services.job_processors import UnknownJobType, get_processor
from app.utils.sql_utils import reclaim_storage, reindex_table, table_size
from app.utils.timezone_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

RESET_MESSAGE = "Reset from abandoned processing state"
ABANDONED_MESSAGE = "Abandoned in processing state after max attempts"

# Mensagens de falhas que não melhoram com nova tentativa
_PERMANENT_MARKERS = ("alcohol", "no water", "not detect", "invalid", "no image data")


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_job(job: Job, include_payload: bool = False) -> Dict[str, Any]:
    data = {
        "id": str(job.id),
        "userId": str(job.user_id) if job.user_id else None,
        "jobType": job.job_type,
        "status": job.status,
        "attempts": job.attempts,
        "maxAttempts": job.max_attempts,
        "result": job.result,
        "error": job.error_message,
        "durationMs": job.duration_ms,
        "createdAt": _iso(job.created_at),
        "startedAt": _iso(job.started_at),
        "completedAt": _iso(job.completed_at),
    }
    if include_payload:
        data["payload"] = job.payload
    return data


def enqueue_job(
    db: Session,
    job_type: str,
    payload: Dict[str, Any],
    user_id: Optional[UUID] = None,
    max_attempts: Optional[int] = None,
) -> Job:
    """
    Insere um job pending.

    Raises:
        UnknownJobType: tipo sem handler
    """
    get_processor(job_type)
    job = Job(
        user_id=user_id,
        job_type=job_type.replace("-", "_"),
        status=JOB_PENDING,
        payload=payload,
        attempts=0,
        max_attempts=max_attempts or settings.JOB_MAX_ATTEMPTS,
        created_at=utc_now(),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"[Job {job.id}] Created {job.job_type} job for user {user_id}")
    return job


def get_job(db: Session, job_id: UUID, user_id: Optional[UUID] = None) -> Optional[Job]:
    query = db.query(Job).filter(Job.id == job_id)
    if user_id is not None:
        query = query.filter(Job.user_id == user_id)
    return query.first()


def claim_pending_jobs(
    db: Session,
    limit: int,
    exclude_ids: Iterable[UUID] = (),
) -> List[UUID]:
    """
    Reivindica até `limit` jobs pending (mais antigos primeiro) e os marca
    como processing, incrementando attempts.

    Returns:
        IDs reivindicados
    """
    now = utc_now()
    query = db.query(Job).filter(
        Job.status == JOB_PENDING,
        Job.attempts < Job.max_attempts,
    )
    excluded = list(exclude_ids)
    if excluded:
        query = query.filter(Job.id.notin_(excluded))

    jobs = query.order_by(Job.created_at.asc()).limit(limit).with_for_update(skip_locked=True).all()

    for job in jobs:
        job.status = JOB_PROCESSING
        job.started_at = now
        job.attempts = (job.attempts or 0) + 1
    db.commit()

    return [job.id for job in jobs]


def is_permanent_failure(exc: Exception) -> bool:
    if isinstance(exc, AnalysisError):
        return exc.permanent
    if isinstance(exc, UnknownJobType):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _PERMANENT_MARKERS)


def complete_job(db: Session, job: Job, result: Dict[str, Any], duration_ms: int) -> None:
    # o commit leva junto a entrada que o handler deixou pendente na sessão
    job.status = JOB_COMPLETE
    job.result = result
    job.error_message = None
    job.duration_ms = duration_ms
    job.completed_at = utc_now()
    db.commit()


def fail_job(db: Session, job: Job, exc: Exception, duration_ms: int) -> str:
    """
    Registra a falha. Falhas transitórias voltam para pending enquanto houver
    tentativas; permanentes (ou sem tentativas restantes) viram error.

    Returns:
        "retry" ou "error"
    """
    message = str(exc) or exc.__class__.__name__
    job.error_message = message[:2000]
    job.duration_ms = duration_ms

    if not is_permanent_failure(exc) and job.attempts < job.max_attempts:
        job.status = JOB_PENDING
        job.started_at = None
        db.commit()
        return "retry"

    job.status = JOB_ERROR
    job.completed_at = utc_now()
    db.commit()
    return "error"


async def process_single_job(
    job_id: UUID,
    session_factory: Callable[[], Session] = SessionLocal,
) -> Dict[str, Any]:
    """Executa um job já reivindicado, com sessão própria."""
    db = session_factory()
    started = time.monotonic()
    try:
        job = db.get(Job, job_id)
        if job is None:
            return {"id": str(job_id), "status": "error", "error": "Job not found", "duration": 0}

        try:
            processor = get_processor(job.job_type)
            result = await processor(db, job)
        except Exception as e:
            db.rollback()
            duration_ms = int((time.monotonic() - started) * 1000)
            job = db.get(Job, job_id)
            outcome = fail_job(db, job, e, duration_ms)
            log = logger.warning if outcome == "retry" else logger.error
            log(f"[Job {job_id}] {job.job_type} failed ({outcome}, attempt {job.attempts}/{job.max_attempts}): {e}")
            return {"id": str(job_id), "status": outcome, "error": str(e), "duration": duration_ms}

        duration_ms = int((time.monotonic() - started) * 1000)
        complete_job(db, job, result, duration_ms)
        logger.info(f"[Job {job_id}] {job.job_type} complete in {duration_ms}ms")
        return {"id": str(job_id), "status": "complete", "error": None, "duration": duration_ms}
    finally:
        db.close()


async def process_pending_jobs(
    batch_size: Optional[int] = None,
    max_batches: Optional[int] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> Dict[str, Any]:
    """
    Drena a fila em lotes. Cada job é tentado no máximo uma vez por
    execução; os devolvidos para pending ficam para o próximo polling.
    """
    batch_size = batch_size or settings.JOB_BATCH_SIZE
    max_batches = max_batches or settings.JOB_MAX_BATCHES
    started = time.monotonic()
    seen: List[UUID] = []
    results: List[Dict[str, Any]] = []
    batches = 0

    while batches < max_batches:
        db = session_factory()
        try:
            job_ids = claim_pending_jobs(db, batch_size, exclude_ids=seen)
        finally:
            db.close()

        if not job_ids:
            break

        batches += 1
        seen.extend(job_ids)
        logger.info(f"Processing batch {batches} with {len(job_ids)} jobs")
        batch_results = await asyncio.gather(
            *(process_single_job(job_id, session_factory) for job_id in job_ids)
        )
        results.extend(batch_results)

    duration_ms = int((time.monotonic() - started) * 1000)
    processed = len(results)
    avg_job = int(sum(r["duration"] for r in results) / processed) if processed else 0
    throughput = round(processed / (duration_ms / 1000), 2) if duration_ms > 0 else float(processed)

    if processed:
        logger.info(f"Processed {processed} jobs in {batches} batches ({duration_ms}ms)")

    return {
        "message": "All pending jobs processed" if processed else "No pending jobs",
        "processed": processed,
        "batches": batches,
        "jobs": results,
        "duration": duration_ms,
        "avgJobDuration": avg_job,
        "throughput": throughput,
    }


def cleanup_jobs(db: Session, reindex: bool = False, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Varredura: apaga jobs antigos por status e devolve os presos em
    processing para pending.
    """
    started = time.monotonic()
    now = now or utc_now()
    completed_cutoff = now - timedelta(minutes=settings.JOB_COMPLETED_TTL_MINUTES)
    error_cutoff = now - timedelta(minutes=settings.JOB_ERROR_TTL_MINUTES)
    pending_cutoff = now - timedelta(minutes=settings.JOB_PENDING_TTL_MINUTES)
    stuck_cutoff = now - timedelta(minutes=settings.JOB_STUCK_MINUTES)

    completed_deleted = db.query(Job).filter(
        Job.status == JOB_COMPLETE,
        Job.completed_at < completed_cutoff,
    ).delete(synchronize_session=False)

    errors_deleted = db.query(Job).filter(
        Job.status == JOB_ERROR,
        Job.completed_at < error_cutoff,
    ).delete(synchronize_session=False)

    # antes do reset: job devolvido nesta varredura não conta como pending antigo
    pending_deleted = db.query(Job).filter(
        Job.status == JOB_PENDING,
        Job.created_at < pending_cutoff,
    ).delete(synchronize_session=False)

    processing_reset = db.query(Job).filter(
        Job.status == JOB_PROCESSING,
        Job.started_at < stuck_cutoff,
        Job.attempts < Job.max_attempts,
    ).update(
        {"status": JOB_PENDING, "started_at": None, "error_message": RESET_MESSAGE},
        synchronize_session=False,
    )

    processing_failed = db.query(Job).filter(
        Job.status == JOB_PROCESSING,
        Job.started_at < stuck_cutoff,
        Job.attempts >= Job.max_attempts,
    ).update(
        {"status": JOB_ERROR, "completed_at": now, "error_message": ABANDONED_MESSAGE},
        synchronize_session=False,
    )

    db.commit()

    rows_deleted = completed_deleted + errors_deleted + pending_deleted
    if rows_deleted:
        reclaim_storage(db, Job.__tablename__)

    reindexed = False
    reindex_duration = 0
    if reindex:
        reindex_started = time.monotonic()
        reindexed = reindex_table(db, Job.__tablename__)
        reindex_duration = int((time.monotonic() - reindex_started) * 1000)

    summary = {
        "completedDeleted": completed_deleted,
        "errorsDeleted": errors_deleted,
        "processingReset": processing_reset,
        "processingFailed": processing_failed,
        "pendingDeleted": pending_deleted,
        "totalCleaned": rows_deleted + processing_reset + processing_failed,
        "actualRowsDeleted": rows_deleted,
        "reindexed": reindexed,
        "reindexDuration": reindex_duration,
        "duration": int((time.monotonic() - started) * 1000),
    }
    logger.info(f"Job cleanup: {summary}")
    return summary


def _status_counts(db: Session) -> Dict[str, int]:
    counts = {status: 0 for status in JOB_STATUSES}
    for status, count in db.query(Job.status, func.count(Job.id)).group_by(Job.status).all():
        counts[status] = count
    return counts


def get_job_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Contagens por status, candidatos à limpeza, jobs recentes e vazão."""
    now = now or utc_now()
    hour_ago = now - timedelta(hours=1)

    completed_old = db.query(Job).filter(
        Job.status == JOB_COMPLETE,
        Job.completed_at < now - timedelta(hours=settings.ADMIN_COMPLETED_OLD_HOURS),
    ).count()
    error_old = db.query(Job).filter(
        Job.status == JOB_ERROR,
        Job.completed_at < now - timedelta(hours=settings.ADMIN_ERROR_OLD_HOURS),
    ).count()
    processing_stuck = db.query(Job).filter(
        Job.status == JOB_PROCESSING,
        Job.started_at < now - timedelta(minutes=settings.JOB_STUCK_MINUTES),
    ).count()
    pending_old = db.query(Job).filter(
        Job.status == JOB_PENDING,
        Job.created_at < now - timedelta(hours=settings.ADMIN_PENDING_OLD_HOURS),
    ).count()

    completed_last_hour = db.query(Job).filter(
        Job.status == JOB_COMPLETE,
        Job.completed_at >= hour_ago,
    )
    completed_count = completed_last_hour.count()
    avg_duration = completed_last_hour.with_entities(func.avg(Job.duration_ms)).scalar()

    recent = db.query(Job).order_by(Job.created_at.desc()).limit(10).all()

    return {
        "statusCounts": _status_counts(db),
        "cleanupCandidates": {
            "completedOld": completed_old,
            "errorOld": error_old,
            "processingStuck": processing_stuck,
            "pendingOld": pending_old,
            "total": completed_old + error_old + processing_stuck + pending_old,
        },
        "metrics": {
            "completedLastHour": completed_count,
            "jobsPerMinute": round(completed_count / 60, 2),
            "avgDurationMs": int(avg_duration) if avg_duration is not None else 0,
        },
        "recentJobs": [serialize_job(job) for job in recent],
        "timestamp": now.isoformat(),
    }


def get_storage_breakdown(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Distribuição da tabela jobs por status e idade."""
    now = now or utc_now()

    breakdown = {}
    rows = db.query(
        Job.status,
        func.count(Job.id),
        func.min(Job.created_at),
        func.max(Job.created_at),
    ).group_by(Job.status).all()
    for status, count, oldest, newest in rows:
        breakdown[status] = {"count": count, "oldest": _iso(oldest), "newest": _iso(newest)}

    too_recent = {
        "completed": db.query(Job).filter(
            Job.status == JOB_COMPLETE,
            Job.completed_at >= now - timedelta(hours=settings.ADMIN_COMPLETED_OLD_HOURS),
        ).count(),
        "errors": db.query(Job).filter(
            Job.status == JOB_ERROR,
            Job.completed_at >= now - timedelta(hours=settings.ADMIN_ERROR_OLD_HOURS),
        ).count(),
        "pending": db.query(Job).filter(
            Job.status == JOB_PENDING,
            Job.created_at >= now - timedelta(hours=settings.ADMIN_PENDING_OLD_HOURS),
        ).count(),
    }

    oldest_jobs = db.query(Job).order_by(Job.created_at.asc()).limit(20).all()

    return {
        "statusBreakdown": breakdown,
        "tooRecentToDelete": too_recent,
        "tableSize": table_size(db, Job.__tablename__),
        "sampleOldestJobs": [serialize_job(job) for job in oldest_jobs],
        "timestamp": now.isoformat(),
    }
