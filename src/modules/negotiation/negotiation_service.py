"""Negotiation protocol: counter offers exchanged over a single bid.

The negotiation's status is driven by the messages sent into it:

* ``counter_offer`` supersedes the pending offer and reopens a closed thread
* ``acceptance`` resolves the pending offer to accepted and closes the thread
* ``rejection`` resolves the pending offer to rejected and leaves it open
* ``offer_status=cancelled`` on any message withdraws the pending offer; a
  counter offer sent that way is kept for the record but never becomes pending

At most one counter offer is pending at a time. Its id is kept on the
negotiation row (``pending_offer_message_id``) and updated under the row lock
by every send, so resolution never depends on message ordering.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.bid import Bid
from src.models.enums import MessageType, NegotiationStatus, OfferStatus, UserRole
from src.models.negotiation import Negotiation
from src.models.negotiation_message import NegotiationMessage
from src.models.rfq import Rfq
from src.modules.bid.constants import NEGOTIABLE_STATUSES
from src.modules.events.outbox_service import OutboxService
from src.modules.negotiation.constants import (
    DEFAULT_ACCEPT_MESSAGE,
    DEFAULT_REJECT_MESSAGE,
    DEFAULT_WITHDRAW_MESSAGE,
    EVENT_NEGOTIATION_MESSAGE_SENT,
    EVENT_NEGOTIATION_STARTED,
    EVENT_NEGOTIATION_STATUS_CHANGED,
    MAX_MESSAGE_LENGTH,
    MESSAGE_PREVIEW_LENGTH,
    MESSAGEABLE_STATUSES,
    MIN_MESSAGE_LENGTH,
)
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.permissions import require_company_member, require_role

logger = logging.getLogger(__name__)


def validate_message(message: str | None) -> str:
    text = (message or "").strip()
    if not MIN_MESSAGE_LENGTH <= len(text) <= MAX_MESSAGE_LENGTH:
        raise ValidationException(
            f"Message must be between {MIN_MESSAGE_LENGTH} and {MAX_MESSAGE_LENGTH} characters",
            details=[{"field": "message", "message": f"length {len(text)}"}],
        )
    return text


class NegotiationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Start / read
    # ------------------------------------------------------------------

    async def start(
        self,
        bid_id: uuid.UUID,
        actor: AuthenticatedUser,
        initial_message: str,
        counter_offer_data: dict | None = None,
    ) -> Negotiation:
        """Open a negotiation on a bid. One negotiation per bid."""
        require_role(actor, UserRole.BUYER, action="start negotiations")
        text = validate_message(initial_message)

        bid = (
            await self.db.execute(select(Bid).where(Bid.id == bid_id).with_for_update())
        ).scalar_one_or_none()
        if bid is None:
            raise NotFoundException(f"Bid {bid_id} not found")
        rfq = await self.db.get(Rfq, bid.rfq_id)
        require_company_member(actor, rfq.company_id, action="negotiate on this RFQ")

        if bid.status not in NEGOTIABLE_STATUSES:
            raise PreconditionFailedException(
                f"Cannot negotiate on a bid in status '{bid.status.value}'"
            )
        existing = (
            await self.db.execute(select(Negotiation.id).where(Negotiation.bid_id == bid_id))
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictException(
                f"A negotiation already exists for bid {bid.bid_number}",
                details=[{"negotiation_id": str(existing)}],
            )

        now = datetime.now(UTC)
        negotiation = Negotiation(
            id=uuid.uuid4(),
            rfq_id=bid.rfq_id,
            bid_id=bid.id,
            initiated_by=actor.id,
            supplier_id=bid.submitted_by,
            status=NegotiationStatus.ACTIVE,
            initial_message=text,
            counter_offer_data=counter_offer_data,
            last_activity_at=now,
        )
        self.db.add(negotiation)
        self.db.add(
            NegotiationMessage(
                id=uuid.uuid4(),
                negotiation_id=negotiation.id,
                sender_id=actor.id,
                message=text,
                message_type=MessageType.TEXT,
                offer_data=counter_offer_data,
            )
        )
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictException(
                f"A negotiation already exists for bid {bid.bid_number}"
            ) from exc

        await OutboxService(self.db).publish_event(
            event_type=EVENT_NEGOTIATION_STARTED,
            aggregate_type="negotiation",
            aggregate_id=str(negotiation.id),
            actor_id=actor.id,
            payload={
                **self._event_base(negotiation),
                "bid_number": bid.bid_number,
                "rfq_reference_number": rfq.reference_number,
                "rfq_title": rfq.title,
                "recipient_id": str(negotiation.supplier_id),
                "message_preview": text[:MESSAGE_PREVIEW_LENGTH],
            },
        )
        logger.info("Negotiation %s started on bid %s by %s", negotiation.id, bid.id, actor.id)
        return negotiation

    async def get_negotiation(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser | None = None
    ) -> Negotiation:
        negotiation = await self.db.get(Negotiation, negotiation_id)
        if negotiation is None:
            raise NotFoundException(f"Negotiation {negotiation_id} not found")
        if actor is not None:
            self._ensure_participant(negotiation, actor, allow_admin=True)
        return negotiation

    async def get_for_bid(self, bid_id: uuid.UUID, actor: AuthenticatedUser) -> Negotiation:
        negotiation = (
            await self.db.execute(select(Negotiation).where(Negotiation.bid_id == bid_id))
        ).scalar_one_or_none()
        if negotiation is None:
            raise NotFoundException(f"No negotiation for bid {bid_id}")
        self._ensure_participant(negotiation, actor, allow_admin=True)
        return negotiation

    async def list_for_user(self, actor: AuthenticatedUser) -> list[Negotiation]:
        query = select(Negotiation)
        if not actor.is_admin:
            query = query.where(
                (Negotiation.initiated_by == actor.id) | (Negotiation.supplier_id == actor.id)
            )
        result = await self.db.execute(query.order_by(Negotiation.last_activity_at.desc()))
        return list(result.scalars().all())

    async def list_messages(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser
    ) -> list[NegotiationMessage]:
        await self.get_negotiation(negotiation_id, actor)
        result = await self.db.execute(
            select(NegotiationMessage)
            .where(NegotiationMessage.negotiation_id == negotiation_id)
            .order_by(NegotiationMessage.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_messages_read(self, negotiation_id: uuid.UUID, actor: AuthenticatedUser) -> int:
        """Mark the counterpart's unread messages as read. Returns the count."""
        negotiation = await self.get_negotiation(negotiation_id)
        self._ensure_participant(negotiation, actor)
        result = await self.db.execute(
            update(NegotiationMessage)
            .where(
                NegotiationMessage.negotiation_id == negotiation_id,
                NegotiationMessage.sender_id != actor.id,
                NegotiationMessage.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(UTC))
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(
        self,
        negotiation_id: uuid.UUID,
        actor: AuthenticatedUser,
        message: str,
        message_type: MessageType = MessageType.TEXT,
        offer_data: dict | None = None,
        offer_status: OfferStatus | None = None,
    ) -> NegotiationMessage:
        """Append a message and apply its effect on the pending offer and status."""
        text = validate_message(message)
        negotiation = await self._lock_negotiation(negotiation_id)
        self._ensure_participant(negotiation, actor)
        if negotiation.status not in MESSAGEABLE_STATUSES:
            raise PreconditionFailedException(
                f"Negotiation is {negotiation.status.value}; no further messages are accepted"
            )

        now = datetime.now(UTC)
        sent = NegotiationMessage(
            id=uuid.uuid4(),
            negotiation_id=negotiation.id,
            sender_id=actor.id,
            message=text,
            message_type=message_type,
            offer_data=offer_data,
            offer_status=offer_status,
        )
        self.db.add(sent)
        # Insert the message before the negotiation row points at it
        await self.db.flush()

        pending = await self._pending_offer(negotiation)
        old_status = negotiation.status

        if message_type == MessageType.COUNTER_OFFER:
            if pending is not None:
                pending.offer_status = OfferStatus.CANCELLED
            if offer_status is not None:
                # A counter offer that arrives already resolved (usually
                # cancelled, as a withdrawal) never becomes the pending one
                negotiation.pending_offer_message_id = None
            else:
                negotiation.pending_offer_message_id = sent.id
            if negotiation.status == NegotiationStatus.CLOSED and offer_status is None:
                negotiation.status = NegotiationStatus.ACTIVE
                negotiation.closed_at = None
        elif message_type == MessageType.ACCEPTANCE:
            if pending is not None:
                pending.offer_status = OfferStatus.ACCEPTED
                negotiation.accepted_offer_message_id = pending.id
                negotiation.pending_offer_message_id = None
            negotiation.status = NegotiationStatus.CLOSED
            negotiation.closed_at = now
        elif message_type == MessageType.REJECTION:
            if pending is not None:
                pending.offer_status = OfferStatus.REJECTED
                negotiation.pending_offer_message_id = None
        elif offer_status == OfferStatus.CANCELLED:
            if pending is not None:
                pending.offer_status = OfferStatus.CANCELLED
                negotiation.pending_offer_message_id = None

        negotiation.last_activity_at = now
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_NEGOTIATION_MESSAGE_SENT,
            aggregate_type="negotiation",
            aggregate_id=str(negotiation.id),
            actor_id=actor.id,
            payload={
                **self._event_base(negotiation),
                "message_id": str(sent.id),
                "sender_id": str(actor.id),
                "sender_name": actor.name or actor.email,
                "recipient_id": str(self._counterpart(negotiation, actor)),
                "message_type": message_type.value,
                "offer_data": offer_data,
                "offer_status": offer_status.value if offer_status else None,
                "resolved_offer_id": str(pending.id) if pending is not None else None,
                "message_preview": text[:MESSAGE_PREVIEW_LENGTH],
                "sent_at": now.isoformat(),
            },
        )
        if negotiation.status != old_status:
            await self._publish_status_change(negotiation, old_status, actor)

        logger.info(
            "Negotiation %s: %s sent %s (status %s -> %s)",
            negotiation.id,
            actor.id,
            message_type.value,
            old_status.value,
            negotiation.status.value,
        )
        return sent

    async def counter_offer(
        self,
        negotiation_id: uuid.UUID,
        actor: AuthenticatedUser,
        message: str,
        offer_data: dict,
    ) -> NegotiationMessage:
        if not offer_data:
            raise ValidationException(
                "A counter offer needs offer_data",
                details=[{"field": "offer_data", "message": "required"}],
            )
        return await self.send_message(
            negotiation_id, actor, message, MessageType.COUNTER_OFFER, offer_data=offer_data
        )

    async def accept_offer(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser, message: str | None = None
    ) -> NegotiationMessage:
        return await self.send_message(
            negotiation_id, actor, message or DEFAULT_ACCEPT_MESSAGE, MessageType.ACCEPTANCE
        )

    async def reject_offer(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser, message: str | None = None
    ) -> NegotiationMessage:
        return await self.send_message(
            negotiation_id, actor, message or DEFAULT_REJECT_MESSAGE, MessageType.REJECTION
        )

    async def withdraw_offer(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser, message: str | None = None
    ) -> NegotiationMessage:
        return await self.send_message(
            negotiation_id,
            actor,
            message or DEFAULT_WITHDRAW_MESSAGE,
            MessageType.TEXT,
            offer_status=OfferStatus.CANCELLED,
        )

    # ------------------------------------------------------------------
    # Close / cancel
    # ------------------------------------------------------------------

    async def close(self, negotiation_id: uuid.UUID, actor: AuthenticatedUser) -> Negotiation:
        """Close an active negotiation without accepting an offer."""
        negotiation = await self._lock_negotiation(negotiation_id)
        self._ensure_participant(negotiation, actor, allow_admin=True)
        if negotiation.status != NegotiationStatus.ACTIVE:
            raise PreconditionFailedException(
                f"Only active negotiations can be closed (status '{negotiation.status.value}')"
            )
        old_status = negotiation.status
        now = datetime.now(UTC)
        negotiation.status = NegotiationStatus.CLOSED
        negotiation.closed_at = now
        negotiation.last_activity_at = now
        await self.db.flush()
        await self._publish_status_change(negotiation, old_status, actor)
        logger.info("Negotiation %s closed by %s", negotiation.id, actor.id)
        return negotiation

    async def cancel(
        self, negotiation_id: uuid.UUID, actor: AuthenticatedUser, reason: str | None = None
    ) -> Negotiation:
        """Cancel the negotiation for good. Only the initiating buyer or an admin."""
        negotiation = await self._lock_negotiation(negotiation_id)
        if not actor.is_admin and actor.id != negotiation.initiated_by:
            raise ForbiddenException("Only the initiating buyer can cancel this negotiation")
        if negotiation.status == NegotiationStatus.CANCELLED:
            raise PreconditionFailedException("Negotiation is already cancelled")
        if negotiation.purchase_order_id is not None:
            raise PreconditionFailedException(
                "A purchase order was already issued from this negotiation"
            )

        pending = await self._pending_offer(negotiation)
        if pending is not None:
            pending.offer_status = OfferStatus.CANCELLED
            negotiation.pending_offer_message_id = None

        old_status = negotiation.status
        now = datetime.now(UTC)
        negotiation.status = NegotiationStatus.CANCELLED
        negotiation.closed_at = now
        negotiation.last_activity_at = now
        await self.db.flush()
        await self._publish_status_change(negotiation, old_status, actor, reason)
        logger.info("Negotiation %s cancelled by %s", negotiation.id, actor.id)
        return negotiation

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _publish_status_change(
        self,
        negotiation: Negotiation,
        old_status: NegotiationStatus,
        actor: AuthenticatedUser,
        reason: str | None = None,
    ) -> None:
        await OutboxService(self.db).publish_event(
            event_type=EVENT_NEGOTIATION_STATUS_CHANGED,
            aggregate_type="negotiation",
            aggregate_id=str(negotiation.id),
            actor_id=actor.id,
            payload={
                **self._event_base(negotiation),
                "from_status": old_status.value,
                "to_status": negotiation.status.value,
                "changed_by": str(actor.id),
                "reason": reason,
            },
        )

    async def _lock_negotiation(self, negotiation_id: uuid.UUID) -> Negotiation:
        result = await self.db.execute(
            select(Negotiation)
            .where(Negotiation.id == negotiation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        negotiation = result.scalar_one_or_none()
        if negotiation is None:
            raise NotFoundException(f"Negotiation {negotiation_id} not found")
        return negotiation

    async def _pending_offer(self, negotiation: Negotiation) -> NegotiationMessage | None:
        if negotiation.pending_offer_message_id is None:
            return None
        pending = await self.db.get(NegotiationMessage, negotiation.pending_offer_message_id)
        if pending is None or pending.offer_status is not None:
            return None
        return pending

    @staticmethod
    def _ensure_participant(
        negotiation: Negotiation, actor: AuthenticatedUser, allow_admin: bool = False
    ) -> None:
        if actor.id in (negotiation.initiated_by, negotiation.supplier_id):
            return
        if allow_admin and actor.is_admin:
            return
        raise ForbiddenException("Only the negotiation participants can do this")

    @staticmethod
    def _counterpart(negotiation: Negotiation, actor: AuthenticatedUser) -> uuid.UUID:
        if actor.id == negotiation.initiated_by:
            return negotiation.supplier_id
        return negotiation.initiated_by

    @staticmethod
    def _event_base(negotiation: Negotiation) -> dict:
        return {
            "negotiation_id": str(negotiation.id),
            "rfq_id": str(negotiation.rfq_id),
            "bid_id": str(negotiation.bid_id),
            "buyer_user_id": str(negotiation.initiated_by),
            "supplier_user_id": str(negotiation.supplier_id),
            "status": negotiation.status.value,
        }
