"""OutboxProcessor: drains committed domain events for Celery workers."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import text
from sqlalchemy.orm import Session

from src.database.engine import sync_engine
from src.middleware.request_id import request_id_ctx
from src.modules.events.handlers import EventHandlerRegistry

logger = logging.getLogger(__name__)

PROCESSED_EVENT_TTL = timedelta(days=7)


class OutboxProcessor:
    """Delivers pending outbox rows to the registered subscribers.

    Uses SELECT ... FOR UPDATE SKIP LOCKED so several workers can drain the
    table concurrently. Delivery is at-least-once; the processed_events table
    keeps a row from being dispatched twice after a crash between dispatch
    and commit.
    """

    def __init__(self, engine=None) -> None:
        self.engine = engine or sync_engine
        # Subscribers live in the notifications module
        from src.modules.notifications.subscribers import register_handlers

        register_handlers()

    def process_batch(self, batch_size: int = 50) -> dict:
        """Process a batch of pending events.

        Returns dict with 'processed' and 'failed' counts.
        """
        processed_count = 0
        failed_count = 0

        with Session(self.engine) as session:
            pending_rows = session.execute(
                text("""
                    SELECT id, event_type, aggregate_type, aggregate_id, request_id,
                           payload, retry_count, max_retries
                    FROM event_outbox
                    WHERE status = 'PENDING'
                    ORDER BY created_at ASC
                    LIMIT :batch_size
                    FOR UPDATE SKIP LOCKED
                """),
                {"batch_size": batch_size},
            ).fetchall()

            for row in pending_rows:
                try:
                    already_processed = session.execute(
                        text("SELECT 1 FROM processed_events WHERE event_id = :event_id LIMIT 1"),
                        {"event_id": row.id},
                    ).fetchone()

                    if already_processed:
                        self._mark_completed(session, row.id)
                        session.commit()
                        processed_count += 1
                        continue

                    # PROCESSING is not committed; a crash rolls back to PENDING
                    session.execute(
                        text("UPDATE event_outbox SET status = 'PROCESSING' WHERE id = :event_id"),
                        {"event_id": row.id},
                    )

                    # Handler log lines carry the request that produced the event
                    token = request_id_ctx.set(row.request_id)
                    try:
                        results = EventHandlerRegistry.dispatch(row.event_type, row.payload)
                    finally:
                        request_id_ctx.reset(token)
                    handler_errors = [r for r in results if r["status"] == "error"]
                    if handler_errors:
                        raise RuntimeError(
                            "Handler errors: "
                            + "; ".join(f"{r['handler']}: {r['error']}" for r in handler_errors)
                        )

                    session.execute(
                        text("""
                            INSERT INTO processed_events
                                (id, event_id, event_type, handler_names, processed_at, expires_at)
                            VALUES
                                (gen_random_uuid(), :event_id, :event_type, :handler_names,
                                 now(), :expires_at)
                        """),
                        {
                            "event_id": row.id,
                            "event_type": row.event_type,
                            "handler_names": ",".join(r["handler"] for r in results)
                            or "no_handlers",
                            "expires_at": datetime.now(UTC) + PROCESSED_EVENT_TTL,
                        },
                    )
                    self._mark_completed(session, row.id)
                    session.commit()
                    processed_count += 1

                except Exception as exc:
                    session.rollback()
                    logger.exception(
                        "Failed to process event %s (type=%s, request=%s)",
                        row.id,
                        row.event_type,
                        row.request_id,
                    )
                    new_retry_count = row.retry_count + 1
                    session.execute(
                        text("""
                            UPDATE event_outbox
                            SET status = :new_status,
                                retry_count = :retry_count,
                                last_error = :error
                            WHERE id = :event_id
                        """),
                        {
                            "new_status": "FAILED"
                            if new_retry_count >= row.max_retries
                            else "PENDING",
                            "retry_count": new_retry_count,
                            "error": str(exc)[:2000],
                            "event_id": row.id,
                        },
                    )
                    session.commit()
                    failed_count += 1

        if processed_count or failed_count:
            logger.info(
                "Outbox batch done: %d processed, %d failed", processed_count, failed_count
            )
        return {"processed": processed_count, "failed": failed_count}

    @staticmethod
    def _mark_completed(session: Session, event_id) -> None:
        session.execute(
            text("""
                UPDATE event_outbox
                SET status = 'COMPLETED', processed_at = now()
                WHERE id = :event_id
            """),
            {"event_id": event_id},
        )

    def cleanup_expired(self) -> int:
        """Delete expired processed_events and completed outbox rows older than 30 days."""
        total_deleted = 0

        with Session(self.engine) as session:
            result = session.execute(
                text("DELETE FROM processed_events WHERE expires_at < now()")
            )
            total_deleted += result.rowcount

            result = session.execute(
                text("""
                    DELETE FROM event_outbox
                    WHERE status = 'COMPLETED'
                      AND processed_at < now() - INTERVAL '30 days'
                """)
            )
            total_deleted += result.rowcount
            session.commit()

        logger.info("Cleaned up %d expired event records", total_deleted)
        return total_deleted
