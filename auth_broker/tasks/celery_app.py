"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from auth_broker.config import get_settings

settings = get_settings()

celery_app = Celery(
    "auth_broker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "auth_broker.tasks.cleanup_tasks.*": {"queue": "default"},
    },
    beat_schedule={
        # Expired sessions, exchange codes and tokens: hourly
        "cleanup-expired-records": {
            "task": "auth_broker.tasks.cleanup_tasks.cleanup_expired_records",
            "schedule": crontab(minute=0),
        },
    },
)

celery_app.autodiscover_tasks(["auth_broker.tasks"], related_name="cleanup_tasks")
