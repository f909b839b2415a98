"""OutboxService: appends domain events inside the caller's transaction."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.middleware.request_id import request_id_ctx
from src.models.enums import EventStatus
from src.models.event_outbox import EventOutbox


class OutboxService:
    """Writes events next to the state change they describe.

    Nothing is delivered until the surrounding transaction commits and the
    outbox processor picks the row up, so a rolled-back transition never
    produces a notification.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish_event(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_id: str,
        payload: dict,
        actor_id: uuid.UUID | None = None,
    ) -> EventOutbox:
        """Create a new event in the outbox with PENDING status."""
        event = EventOutbox(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            actor_id=actor_id,
            request_id=request_id_ctx.get(),
            payload=payload,
            status=EventStatus.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_for_aggregate(
        self, aggregate_type: str, aggregate_id: str
    ) -> list[EventOutbox]:
        """Events recorded for one entity, oldest first."""
        statement = (
            select(EventOutbox)
            .where(
                EventOutbox.aggregate_type == aggregate_type,
                EventOutbox.aggregate_id == aggregate_id,
            )
            .order_by(EventOutbox.created_at.asc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
