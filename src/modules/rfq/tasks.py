"""Celery tasks for RFQ lifecycle automation."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from sqlalchemy import select

from celery_app import celery
from src.config import settings
from src.database.engine import async_session
from src.models.enums import RfqStatus
from src.models.rfq import Rfq
from src.modules.tenancy.auth import system_actor

logger = logging.getLogger(__name__)


async def _auto_close_expired_rfqs_async() -> dict:
    """Move bidding_open RFQs whose bid_deadline has passed to bidding_closed.

    Each RFQ runs in its own savepoint so one failure does not undo the
    others in the batch.
    """
    from src.modules.rfq.rfq_service import RfqService

    stats = {"checked": 0, "closed": 0, "errors": 0}
    now = datetime.now(UTC)
    actor = system_actor()

    async with async_session() as session:
        result = await session.execute(
            select(Rfq.id).where(
                Rfq.status == RfqStatus.BIDDING_OPEN,
                Rfq.bid_deadline.isnot(None),
                Rfq.bid_deadline <= now,
            )
        )
        rfq_ids = list(result.scalars().all())
        stats["checked"] = len(rfq_ids)

        svc = RfqService(session)
        for rfq_id in rfq_ids:
            try:
                async with session.begin_nested():
                    await svc.transition(
                        rfq_id,
                        RfqStatus.BIDDING_CLOSED,
                        actor,
                        {"reason": "Automated: bid deadline reached"},
                    )
                stats["closed"] += 1
            except Exception:
                logger.exception("Error auto-closing bidding for RFQ %s", rfq_id)
                stats["errors"] += 1

        await session.commit()

    return stats


@celery.task(name="src.modules.rfq.tasks.auto_close_expired_rfqs")
def auto_close_expired_rfqs():
    """Close bidding on RFQs past their deadline."""
    if not settings.rfq_auto_close_enabled:
        logger.debug("auto_close_expired_rfqs skipped: disabled")
        return {"checked": 0, "closed": 0, "errors": 0, "skipped": True}
    stats = asyncio.run(_auto_close_expired_rfqs_async())
    logger.info("auto_close_expired_rfqs complete: %s", stats)
    return stats
