"""Celery tasks that drain the event outbox."""

from celery_app import celery
from src.config import settings
from src.modules.events.outbox_processor import OutboxProcessor


@celery.task(name="src.modules.events.tasks.process_outbox")
def process_outbox():
    """Deliver a batch of committed workflow events to their subscribers."""
    return OutboxProcessor().process_batch(batch_size=settings.event_outbox_batch_size)


@celery.task(name="src.modules.events.tasks.cleanup_processed_events")
def cleanup_processed_events():
    return OutboxProcessor().cleanup_expired()
