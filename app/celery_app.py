"""
Configuração do Celery: polling da fila de jobs e varredura de limpeza
"""
from celery import Celery
from app.config import settings

celery_app = Celery(
    "hydrate",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.job_tasks"]
)

# Configurações do Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutos
    task_soft_time_limit=240,  # 4 minutos
    beat_schedule={
        "process-pending-jobs": {
            "task": "process_jobs_task",
            "schedule": float(settings.JOB_POLL_SECONDS),
        },
        "cleanup-jobs": {
            "task": "cleanup_jobs_task",
            "schedule": float(settings.JOB_CLEANUP_SECONDS),
        },
    },
)
