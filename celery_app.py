"""Celery application for ProcureFlow background work (outbox drain, RFQ auto-close)."""

from celery import Celery
from celery.schedules import crontab

from src.config import settings

celery = Celery("procureflow")

beat_schedule = {
    "process-event-outbox": {
        "task": "src.modules.events.tasks.process_outbox",
        "schedule": settings.event_outbox_poll_seconds,
    },
    "cleanup-processed-events-daily": {
        "task": "src.modules.events.tasks.cleanup_processed_events",
        "schedule": crontab(hour=3, minute=30),
    },
}

if settings.rfq_auto_close_enabled:
    beat_schedule["rfq-auto-close-expired"] = {
        "task": "src.modules.rfq.tasks.auto_close_expired_rfqs",
        "schedule": settings.rfq_auto_close_poll_seconds,
    }

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "src.modules.events.tasks.*": {"queue": "event-outbox"},
        "src.modules.rfq.tasks.*": {"queue": "rfq-workflow"},
    },
    task_default_retry_delay=60,
    task_max_retries=3,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    broker_transport_options={
        "max_retries": 10,
        "interval_start": 0.2,
        "interval_step": 0.5,
        "interval_max": 5.0,
        "retry_on_timeout": True,
        "visibility_timeout": 3600,
    },
    beat_schedule=beat_schedule,
)

celery.autodiscover_tasks([
    "src.modules.events",
    "src.modules.rfq",
])
