"""
Testes da fila de jobs (tabela jobs): reivindicação, retry, limpeza e estatísticas
"""
import asyncio
import pytest
from datetime import timedelta
from unittest.mock import patch

from app.database import SessionLocal
from app.models.job import Job, JOB_COMPLETE, JOB_ERROR, JOB_PENDING, JOB_PROCESSING
from app.models.water_entry import WaterEntry
from app.services import job_queue, llm_client
from app.services.analysis_errors import AlcoholNotCountedError, AnalysisNetworkError
from app.services.job_processors import PROCESSORS, UnknownJobType, _persist
from app.services.job_queue import (
    ABANDONED_MESSAGE,
    RESET_MESSAGE,
    claim_pending_jobs,
    cleanup_jobs,
    enqueue_job,
    get_job,
    get_job_stats,
    get_storage_breakdown,
    is_permanent_failure,
    process_pending_jobs,
    serialize_job,
)
from app.tasks.job_tasks import process_jobs_task
from app.utils.timezone_utils import utc_now


async def _ok(db, job):
    return {"ounces": 8, "jobId": str(job.id)}


async def _network_failure(db, job):
    raise AnalysisNetworkError("OpenAI request timed out")


async def _alcohol(db, job):
    raise AlcoholNotCountedError("Alcohol is worth 0 oz of water")


def _job(db, status, **fields):
    fields.setdefault("created_at", utc_now())
    job = Job(job_type="analyze_water", status=status, payload={}, max_attempts=3, **fields)
    db.add(job)
    db.commit()
    return job


def test_enqueue_and_serialize(db_session, user_id):
    job = enqueue_job(db_session, "analyze-water", {"base64": "abc"}, user_id=user_id)

    assert job.job_type == "analyze_water"
    assert job.status == JOB_PENDING
    assert job.attempts == 0
    data = serialize_job(job)
    assert data["status"] == "pending"
    assert data["userId"] == str(user_id)
    assert "payload" not in data
    assert get_job(db_session, job.id, user_id=user_id).id == job.id


def test_enqueue_unknown_type(db_session):
    with pytest.raises(UnknownJobType):
        enqueue_job(db_session, "resize_image", {})


def test_claim_marks_processing_oldest_first(db_session, user_id):
    first = enqueue_job(db_session, "analyze_text", {"description": "a glass"}, user_id=user_id)
    second = enqueue_job(db_session, "analyze_text", {"description": "a mug"}, user_id=user_id)

    claimed = claim_pending_jobs(db_session, limit=1)
    assert claimed == [first.id]

    db_session.expire_all()
    job = db_session.get(Job, first.id)
    assert job.status == JOB_PROCESSING
    assert job.attempts == 1
    assert job.started_at is not None

    assert claim_pending_jobs(db_session, limit=5, exclude_ids=[second.id]) == []


@pytest.mark.asyncio
async def test_process_pending_jobs_completes(db_session, user_id):
    ids = [enqueue_job(db_session, "analyze_water", {"base64": "abc"}, user_id=user_id).id for _ in range(3)]

    with patch.dict(PROCESSORS, {"analyze_water": _ok}):
        summary = await process_pending_jobs(batch_size=2, session_factory=SessionLocal)

    assert summary["message"] == "All pending jobs processed"
    assert summary["processed"] == 3
    assert summary["batches"] == 2
    assert {job["status"] for job in summary["jobs"]} == {"complete"}

    db_session.expire_all()
    for job_id in ids:
        job = db_session.get(Job, job_id)
        assert job.status == JOB_COMPLETE
        assert job.result["ounces"] == 8
        assert job.completed_at is not None


@pytest.mark.asyncio
async def test_no_pending_jobs(db_session):
    summary = await process_pending_jobs(session_factory=SessionLocal)
    assert summary["message"] == "No pending jobs"
    assert summary["processed"] == 0


@pytest.mark.asyncio
async def test_transient_failure_retried_until_max_attempts(db_session, user_id):
    job = enqueue_job(db_session, "analyze_water", {"base64": "abc"}, user_id=user_id, max_attempts=2)

    with patch.dict(PROCESSORS, {"analyze_water": _network_failure}):
        first = await process_pending_jobs(session_factory=SessionLocal)
        # não é reivindicado de novo na mesma execução
        assert first["processed"] == 1
        assert first["jobs"][0]["status"] == "retry"

        db_session.expire_all()
        assert db_session.get(Job, job.id).status == JOB_PENDING

        second = await process_pending_jobs(session_factory=SessionLocal)
        assert second["jobs"][0]["status"] == "error"

    db_session.expire_all()
    failed = db_session.get(Job, job.id)
    assert failed.status == JOB_ERROR
    assert failed.attempts == 2
    assert "timed out" in failed.error_message


@pytest.mark.asyncio
async def test_permanent_failure_goes_straight_to_error(db_session, user_id):
    job = enqueue_job(db_session, "analyze_water", {"base64": "abc"}, user_id=user_id)

    with patch.dict(PROCESSORS, {"analyze_water": _alcohol}):
        await process_pending_jobs(session_factory=SessionLocal)

    db_session.expire_all()
    failed = db_session.get(Job, job.id)
    assert failed.status == JOB_ERROR
    assert failed.attempts == 1


def test_is_permanent_failure():
    assert is_permanent_failure(AlcoholNotCountedError("x")) is True
    assert is_permanent_failure(AnalysisNetworkError("x")) is False
    assert is_permanent_failure(UnknownJobType("x")) is True
    assert is_permanent_failure(ValueError("Invalid job payload")) is True
    assert is_permanent_failure(RuntimeError("connection reset")) is False


def test_cleanup_jobs_thresholds(db_session):
    now = utc_now()
    old_complete = _job(db_session, JOB_COMPLETE, completed_at=now - timedelta(hours=2))
    fresh_complete = _job(db_session, JOB_COMPLETE, completed_at=now - timedelta(minutes=10))
    old_error = _job(db_session, JOB_ERROR, completed_at=now - timedelta(hours=4))
    fresh_error = _job(db_session, JOB_ERROR, completed_at=now - timedelta(hours=1))
    stuck = _job(db_session, JOB_PROCESSING, attempts=1, started_at=now - timedelta(minutes=20),
                 created_at=now - timedelta(minutes=25))
    stuck_exhausted = _job(db_session, JOB_PROCESSING, attempts=3, started_at=now - timedelta(minutes=20),
                           created_at=now - timedelta(minutes=25))
    running = _job(db_session, JOB_PROCESSING, attempts=1, started_at=now - timedelta(minutes=2))
    old_pending = _job(db_session, JOB_PENDING, created_at=now - timedelta(hours=4))
    ids = {
        "old_complete": old_complete.id,
        "fresh_complete": fresh_complete.id,
        "old_error": old_error.id,
        "fresh_error": fresh_error.id,
        "stuck": stuck.id,
        "stuck_exhausted": stuck_exhausted.id,
        "running": running.id,
        "old_pending": old_pending.id,
    }

    summary = cleanup_jobs(db_session, now=now)

    assert summary["completedDeleted"] == 1
    assert summary["errorsDeleted"] == 1
    assert summary["processingReset"] == 1
    assert summary["processingFailed"] == 1
    assert summary["pendingDeleted"] == 1
    assert summary["actualRowsDeleted"] == 3
    assert summary["totalCleaned"] == 5
    assert summary["reindexed"] is False

    db_session.expire_all()
    assert db_session.get(Job, ids["old_complete"]) is None
    assert db_session.get(Job, ids["old_error"]) is None
    assert db_session.get(Job, ids["old_pending"]) is None
    assert db_session.get(Job, ids["fresh_complete"]).status == JOB_COMPLETE
    assert db_session.get(Job, ids["fresh_error"]).status == JOB_ERROR
    assert db_session.get(Job, ids["running"]).status == JOB_PROCESSING

    reset = db_session.get(Job, ids["stuck"])
    assert reset.status == JOB_PENDING
    assert reset.started_at is None
    assert reset.error_message == RESET_MESSAGE

    abandoned = db_session.get(Job, ids["stuck_exhausted"])
    assert abandoned.status == JOB_ERROR
    assert abandoned.error_message == ABANDONED_MESSAGE


def test_job_stats_and_storage_breakdown(db_session):
    now = utc_now()
    _job(db_session, JOB_COMPLETE, completed_at=now - timedelta(minutes=5), duration_ms=1200)
    _job(db_session, JOB_COMPLETE, completed_at=now - timedelta(hours=6), duration_ms=800)
    _job(db_session, JOB_PENDING)
    _job(db_session, JOB_PROCESSING, attempts=1, started_at=now - timedelta(minutes=30))

    stats = get_job_stats(db_session, now=now)
    assert stats["statusCounts"] == {"pending": 1, "processing": 1, "complete": 2, "error": 0}
    assert stats["cleanupCandidates"]["completedOld"] == 1
    assert stats["cleanupCandidates"]["processingStuck"] == 1
    assert stats["cleanupCandidates"]["total"] == 2
    assert stats["metrics"]["completedLastHour"] == 1
    assert stats["metrics"]["avgDurationMs"] == 1200
    assert len(stats["recentJobs"]) == 4

    breakdown = get_storage_breakdown(db_session, now=now)
    assert breakdown["statusBreakdown"]["complete"]["count"] == 2
    assert breakdown["tooRecentToDelete"]["completed"] == 1
    assert breakdown["tooRecentToDelete"]["pending"] == 1
    # tamanho só existe no PostgreSQL
    assert breakdown["tableSize"] is None
    assert len(breakdown["sampleOldestJobs"]) == 4


def test_stuck_job_reset_survives_pending_ttl(db_session):
    now = utc_now()
    stuck = _job(db_session, JOB_PROCESSING, attempts=1, started_at=now - timedelta(minutes=20),
                 created_at=now - timedelta(hours=4))
    stuck_id = stuck.id

    summary = cleanup_jobs(db_session, now=now)

    assert summary["processingReset"] == 1
    assert summary["pendingDeleted"] == 0
    db_session.expire_all()
    assert db_session.get(Job, stuck_id).status == JOB_PENDING


@pytest.mark.asyncio
async def test_entry_not_duplicated_when_worker_dies_before_completing(db_session, user_id):
    job = enqueue_job(db_session, "analyze_text", {"description": "a glass of water"}, user_id=user_id)
    job_id = job.id

    async def _analyzed(db, job):
        return _persist(db, job, {
            "ounces": 8,
            "classification": "cup",
            "liquidType": "water",
            "servings": 1,
        })

    real_complete = job_queue.complete_job
    calls = []

    def _dies_first_time(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("worker killed")
        return real_complete(*args, **kwargs)

    with patch.dict(PROCESSORS, {"analyze_text": _analyzed}), \
            patch("app.services.job_queue.complete_job", side_effect=_dies_first_time):
        with pytest.raises(RuntimeError, match="worker killed"):
            await process_pending_jobs(session_factory=SessionLocal)

        db_session.expire_all()
        assert db_session.query(WaterEntry).filter(WaterEntry.user_id == user_id).count() == 0
        assert db_session.get(Job, job_id).status == JOB_PROCESSING

        # varredura depois do limite de job preso devolve para pending
        swept = cleanup_jobs(db_session, now=utc_now() + timedelta(minutes=11))
        assert swept["processingReset"] == 1

        summary = await process_pending_jobs(session_factory=SessionLocal)

    assert summary["jobs"][0]["status"] == "complete"
    db_session.expire_all()
    entries = db_session.query(WaterEntry).filter(WaterEntry.user_id == user_id).all()
    assert len(entries) == 1
    done = db_session.get(Job, job_id)
    assert done.status == JOB_COMPLETE
    assert done.attempts == 2
    assert done.result["entryId"] == str(entries[0].id)


def test_process_jobs_task_uses_fresh_llm_client_each_poll(db_session, user_id):
    seen = []

    async def _uses_client(db, job):
        seen.append((llm_client.get_llm_client(), asyncio.get_running_loop()))
        return {"ounces": 8}

    with patch.dict(PROCESSORS, {"analyze_water": _uses_client}):
        enqueue_job(db_session, "analyze_water", {"base64": "abc"}, user_id=user_id)
        first = process_jobs_task(batch_size=5)
        enqueue_job(db_session, "analyze_water", {"base64": "abc"}, user_id=user_id)
        second = process_jobs_task(batch_size=5)

    assert first["processed"] == 1
    assert second["processed"] == 1
    (first_client, first_loop), (second_client, second_loop) = seen
    assert first_loop is not second_loop
    assert first_client is not second_client
    assert first_client.client.is_closed()
    assert second_client.client.is_closed()
    assert llm_client._llm_client is None
