"""RFQ lifecycle service: drafting, invitation list, and the RFQ state machine."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.bid import Bid
from src.models.enums import BidStatus, InvitationStatus, RfqStatus, UserRole
from src.models.rfq import Rfq
from src.models.rfq_invitation import RfqInvitation
from src.models.rfq_item import RfqItem
from src.models.rfq_status_history import RfqStatusHistory
from src.modules.events.outbox_service import OutboxService
from src.modules.rfq.constants import (
    EDITABLE_STATUSES,
    EVENT_RFQ_STATUS_CHANGED,
    EVENT_RFQ_SUPPLIERS_INVITED,
    INVITABLE_STATUSES,
    RFQ_MACHINE,
    STATUS_EVENT_MAP,
    SUPPLIER_FACING_STATUSES,
)
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.permissions import require_company_member, require_role
from src.modules.workflow.sequences import RFQ_PREFIX, DocumentSequenceService
from src.modules.workflow.state_machine import AvailableTransition

logger = logging.getLogger(__name__)

# Bid statuses that qualify a supplier for the award
AWARDABLE_BID_STATUSES: set[BidStatus] = {BidStatus.SUBMITTED, BidStatus.UNDER_REVIEW}

_UPDATABLE_FIELDS = {
    "title",
    "description",
    "currency",
    "budget_min",
    "budget_max",
    "delivery_date",
    "bid_deadline",
    "delivery_location",
    "terms_conditions",
}


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes from clients as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _validate_dates(bid_deadline: datetime | None, delivery_date: datetime | None) -> None:
    bid_deadline, delivery_date = as_utc(bid_deadline), as_utc(delivery_date)
    if bid_deadline is not None and delivery_date is not None and bid_deadline >= delivery_date:
        raise ValidationException(
            "Bid deadline must be before the delivery date",
            details=[{"field": "bid_deadline", "message": "must be before delivery_date"}],
        )


class RfqService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_rfq(
        self,
        actor: AuthenticatedUser,
        title: str,
        description: str | None = None,
        currency: str = "USD",
        budget_min: Decimal | None = None,
        budget_max: Decimal | None = None,
        delivery_date: datetime | None = None,
        bid_deadline: datetime | None = None,
        delivery_location: str | None = None,
        terms_conditions: str | None = None,
        items: list[dict] | None = None,
    ) -> Rfq:
        """Create a new RFQ in DRAFT status, optionally with its line items."""
        require_role(actor, UserRole.BUYER, action="create RFQs")
        if actor.company_id is None:
            raise ValidationException("An RFQ must belong to a company")
        bid_deadline, delivery_date = as_utc(bid_deadline), as_utc(delivery_date)
        _validate_dates(bid_deadline, delivery_date)

        reference_number = await self.sequences.next_number(RFQ_PREFIX)
        rfq = Rfq(
            id=uuid.uuid4(),
            reference_number=reference_number,
            company_id=actor.company_id,
            created_by=actor.id,
            title=title,
            description=description,
            currency=currency,
            budget_min=budget_min,
            budget_max=budget_max,
            delivery_date=delivery_date,
            bid_deadline=bid_deadline,
            delivery_location=delivery_location,
            terms_conditions=terms_conditions,
            status=RfqStatus.DRAFT,
            metadata_extra={},
        )
        self.db.add(rfq)
        for position, item in enumerate(items or []):
            data = dict(item)
            data.setdefault("sort_order", position)
            self.db.add(RfqItem(rfq_id=rfq.id, **data))
        self.db.add(
            RfqStatusHistory(
                rfq_id=rfq.id,
                from_status=None,
                to_status=RfqStatus.DRAFT,
                changed_by=actor.id,
                reason="RFQ created",
                metadata_extra={},
            )
        )
        await self.db.flush()
        logger.info("Created RFQ %s (%s)", rfq.id, reference_number)
        return rfq

    async def get_rfq(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser | None = None
    ) -> Rfq:
        """Get an RFQ with its items and invitations. Raises NotFoundException.

        When ``actor`` is given the caller must be able to see the RFQ: the
        buyer company, an admin, an invited supplier, or any supplier while
        bidding is open or once it has bid.
        """
        result = await self.db.execute(
            select(Rfq)
            .options(selectinload(Rfq.items), selectinload(Rfq.invitations))
            .where(Rfq.id == rfq_id)
            .execution_options(populate_existing=True)
        )
        rfq = result.scalar_one_or_none()
        if rfq is None:
            raise NotFoundException(f"RFQ {rfq_id} not found")
        if actor is not None:
            await self.ensure_can_view(rfq, actor)
        return rfq

    async def ensure_can_view(self, rfq: Rfq, actor: AuthenticatedUser) -> None:
        if not actor.is_supplier:
            require_company_member(actor, rfq.company_id, action="view this RFQ")
            return
        if rfq.status == RfqStatus.BIDDING_OPEN:
            return
        if any(i.supplier_company_id == actor.company_id for i in rfq.invitations):
            return
        has_bid = (
            await self.db.execute(
                select(func.count())
                .select_from(Bid)
                .where(Bid.rfq_id == rfq.id, Bid.supplier_company_id == actor.company_id)
            )
        ).scalar()
        if not has_bid:
            raise ForbiddenException("Your company is not allowed to view this RFQ")

    async def list_rfqs(
        self,
        actor: AuthenticatedUser,
        status: RfqStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Rfq], int]:
        """List RFQs visible to the caller.

        Buyers see their company's RFQs, suppliers see RFQs they are invited
        to plus every RFQ open for bidding, admins see everything.
        """
        query = select(Rfq)
        count_query = select(func.count()).select_from(Rfq)

        if actor.is_supplier:
            invited_rfq_ids = (
                select(RfqInvitation.rfq_id)
                .where(RfqInvitation.supplier_company_id == actor.company_id)
                .scalar_subquery()
            )
            visibility = Rfq.id.in_(invited_rfq_ids) | (Rfq.status == RfqStatus.BIDDING_OPEN)
            query = query.where(visibility)
            count_query = count_query.where(visibility)
        elif not actor.is_admin:
            query = query.where(Rfq.company_id == actor.company_id)
            count_query = count_query.where(Rfq.company_id == actor.company_id)

        if status is not None:
            query = query.where(Rfq.status == status)
            count_query = count_query.where(Rfq.status == status)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Rfq.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_rfq(self, rfq_id: uuid.UUID, actor: AuthenticatedUser, **fields) -> Rfq:
        """Edit a DRAFT RFQ. Unknown fields are ignored."""
        rfq = await self.lock_rfq(rfq_id)
        self._ensure_owner(rfq, actor)
        if rfq.status not in EDITABLE_STATUSES:
            raise BusinessRuleException(
                f"Cannot update RFQ in status '{rfq.status.value}'. Only draft RFQs can be edited."
            )
        changes = {k: v for k, v in fields.items() if k in _UPDATABLE_FIELDS}
        for key in ("bid_deadline", "delivery_date"):
            if key in changes:
                changes[key] = as_utc(changes[key])
        _validate_dates(
            changes.get("bid_deadline", rfq.bid_deadline),
            changes.get("delivery_date", rfq.delivery_date),
        )
        for key, value in changes.items():
            setattr(rfq, key, value)
        await self.db.flush()
        return rfq

    async def delete_rfq(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> None:
        """Hard-delete a DRAFT RFQ that has no bids."""
        rfq = await self.lock_rfq(rfq_id)
        self._ensure_owner(rfq, actor)
        if rfq.status != RfqStatus.DRAFT:
            raise BusinessRuleException(
                f"Cannot delete RFQ in status '{rfq.status.value}'. Only draft RFQs can be deleted."
            )
        bid_count = (
            await self.db.execute(
                select(func.count()).select_from(Bid).where(Bid.rfq_id == rfq_id)
            )
        ).scalar() or 0
        if bid_count:
            raise BusinessRuleException("Cannot delete an RFQ that already has bids")
        await self.db.delete(rfq)
        await self.db.flush()
        logger.info("Deleted draft RFQ %s", rfq_id)

    async def add_item(
        self,
        rfq_id: uuid.UUID,
        actor: AuthenticatedUser,
        item_name: str,
        quantity: Decimal,
        unit_of_measure: str,
        item_description: str | None = None,
        specifications: dict | None = None,
        estimated_price: Decimal | None = None,
        sort_order: int = 0,
    ) -> RfqItem:
        rfq = await self.lock_rfq(rfq_id)
        self._ensure_owner(rfq, actor)
        if rfq.status not in EDITABLE_STATUSES:
            raise BusinessRuleException("Line items can only be added to draft RFQs")
        item = RfqItem(
            rfq_id=rfq_id,
            item_name=item_name,
            item_description=item_description,
            quantity=quantity,
            unit_of_measure=unit_of_measure,
            specifications=specifications,
            estimated_price=estimated_price,
            sort_order=sort_order,
        )
        self.db.add(item)
        await self.db.flush()
        return item

    # ------------------------------------------------------------------
    # Invitation list
    # ------------------------------------------------------------------

    async def invite_suppliers(
        self,
        rfq_id: uuid.UUID,
        actor: AuthenticatedUser,
        supplier_company_ids: list[uuid.UUID],
    ) -> list[RfqInvitation]:
        """Attach supplier companies to the RFQ. Idempotent, skips duplicates."""
        rfq = await self.lock_rfq(rfq_id)
        self._ensure_owner(rfq, actor)
        if rfq.status not in INVITABLE_STATUSES:
            raise BusinessRuleException(
                "Suppliers can only be invited to draft or published RFQs"
            )

        existing = set(
            (
                await self.db.execute(
                    select(RfqInvitation.supplier_company_id).where(
                        RfqInvitation.rfq_id == rfq_id
                    )
                )
            ).scalars().all()
        )
        now = datetime.now(UTC)
        invitations = []
        for company_id in dict.fromkeys(supplier_company_ids):
            if company_id in existing:
                continue
            invitation = RfqInvitation(
                rfq_id=rfq_id,
                supplier_company_id=company_id,
                invited_by=actor.id,
                invited_at=now,
                status=InvitationStatus.INVITED,
            )
            self.db.add(invitation)
            invitations.append(invitation)
        await self.db.flush()

        # Draft RFQs are not visible yet; suppliers hear about them on bidding_open
        if invitations and rfq.status != RfqStatus.DRAFT:
            await OutboxService(self.db).publish_event(
                event_type=EVENT_RFQ_SUPPLIERS_INVITED,
                aggregate_type="rfq",
                aggregate_id=str(rfq_id),
                actor_id=actor.id,
                payload={
                    **self._event_base(rfq),
                    "supplier_company_ids": [str(i.supplier_company_id) for i in invitations],
                },
            )
        logger.info("Invited %d suppliers to RFQ %s", len(invitations), rfq_id)
        return invitations

    async def list_invitations(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser
    ) -> list[RfqInvitation]:
        """Invited suppliers, visible to the buyer company only."""
        rfq = await self.get_rfq(rfq_id)
        require_company_member(actor, rfq.company_id, action="view invitations for this RFQ")
        result = await self.db.execute(
            select(RfqInvitation)
            .where(RfqInvitation.rfq_id == rfq_id)
            .order_by(RfqInvitation.invited_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def get_available_transitions(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser
    ) -> tuple[Rfq, list[AvailableTransition]]:
        rfq = await self.get_rfq(rfq_id, actor)
        if not actor.is_admin and actor.company_id != rfq.company_id:
            return rfq, []
        return rfq, RFQ_MACHINE.available_transitions(rfq.status, actor.role)

    async def transition(
        self,
        rfq_id: uuid.UUID,
        target: RfqStatus,
        actor: AuthenticatedUser,
        metadata: dict | None = None,
    ) -> Rfq:
        """Move an RFQ along the transition table.

        Locks the row, validates the edge and role, runs the guard for the
        target status, applies side effects, appends history and queues the
        outbox events. Everything happens in the caller's transaction.
        """
        metadata = dict(metadata or {})
        rfq = await self.lock_rfq(rfq_id)
        self._ensure_owner(rfq, actor)
        RFQ_MACHINE.check_transition(rfq.status, target, actor.role)
        context = await self._run_guards(rfq, target, metadata)
        return await self._apply_transition(rfq, target, actor, metadata, context)

    async def force_transition(
        self,
        rfq_id: uuid.UUID,
        target: RfqStatus,
        actor: AuthenticatedUser,
        metadata: dict | None = None,
    ) -> Rfq:
        """Admin override: move to any other status, skipping the table and guards."""
        metadata = dict(metadata or {})
        rfq = await self.lock_rfq(rfq_id)
        RFQ_MACHINE.check_force_transition(rfq.status, target, actor.role)
        context: dict = {}
        if target == RfqStatus.AWARDED and metadata.get("awarded_supplier_id"):
            context["bid"] = await self._find_supplier_bid(
                rfq.id, uuid.UUID(str(metadata["awarded_supplier_id"])), None
            )
        return await self._apply_transition(
            rfq, target, actor, metadata, context, is_override=True
        )

    # Convenience wrappers -------------------------------------------------

    async def publish(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser, bid_deadline: datetime | None = None
    ) -> Rfq:
        metadata = {"bid_deadline": bid_deadline.isoformat()} if bid_deadline else {}
        return await self.transition(rfq_id, RfqStatus.PUBLISHED, actor, metadata)

    async def open_bidding(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> Rfq:
        return await self.transition(rfq_id, RfqStatus.BIDDING_OPEN, actor)

    async def close_bidding(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> Rfq:
        return await self.transition(rfq_id, RfqStatus.BIDDING_CLOSED, actor)

    async def start_evaluation(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> Rfq:
        return await self.transition(rfq_id, RfqStatus.UNDER_EVALUATION, actor)

    async def award(
        self,
        rfq_id: uuid.UUID,
        actor: AuthenticatedUser,
        awarded_supplier_id: uuid.UUID,
        bid_id: uuid.UUID | None = None,
    ) -> Rfq:
        metadata = {"awarded_supplier_id": str(awarded_supplier_id)}
        if bid_id is not None:
            metadata["bid_id"] = str(bid_id)
        return await self.transition(rfq_id, RfqStatus.AWARDED, actor, metadata)

    async def complete(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> Rfq:
        return await self.transition(rfq_id, RfqStatus.COMPLETED, actor)

    async def cancel(self, rfq_id: uuid.UUID, actor: AuthenticatedUser, reason: str) -> Rfq:
        return await self.transition(
            rfq_id, RfqStatus.CANCELLED, actor, {"cancellation_reason": reason}
        )

    async def reopen(self, rfq_id: uuid.UUID, actor: AuthenticatedUser) -> Rfq:
        return await self.transition(rfq_id, RfqStatus.DRAFT, actor)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    async def _run_guards(self, rfq: Rfq, target: RfqStatus, metadata: dict) -> dict:
        """Status-specific preconditions. Returns context for the side effects."""
        if target == RfqStatus.PUBLISHED:
            await self._guard_publish(rfq, metadata)
        elif target == RfqStatus.AWARDED:
            return {"bid": await self._guard_award(rfq, metadata)}
        elif target == RfqStatus.CANCELLED:
            self._guard_cancel(metadata)
        return {}

    async def _guard_publish(self, rfq: Rfq, metadata: dict) -> None:
        item_count = (
            await self.db.execute(
                select(func.count()).select_from(RfqItem).where(RfqItem.rfq_id == rfq.id)
            )
        ).scalar() or 0
        if item_count == 0:
            raise PreconditionFailedException(
                "Cannot publish RFQ without at least one line item"
            )
        deadline = self._effective_deadline(rfq, metadata)
        if rfq.delivery_date is not None and deadline >= rfq.delivery_date:
            raise PreconditionFailedException(
                "Bid deadline must be before the delivery date",
                details=[
                    {
                        "bid_deadline": deadline.isoformat(),
                        "delivery_date": rfq.delivery_date.isoformat(),
                    }
                ],
            )

    async def _guard_award(self, rfq: Rfq, metadata: dict) -> Bid:
        supplier_value = metadata.get("awarded_supplier_id")
        if not supplier_value:
            raise ValidationException(
                "awarded_supplier_id is required to award an RFQ",
                details=[{"field": "awarded_supplier_id", "message": "required"}],
            )
        try:
            supplier_id = uuid.UUID(str(supplier_value))
            bid_id = uuid.UUID(str(metadata["bid_id"])) if metadata.get("bid_id") else None
        except ValueError as exc:
            raise ValidationException("awarded_supplier_id must be a UUID") from exc

        bid = await self._find_supplier_bid(rfq.id, supplier_id, bid_id)
        if bid is None or bid.status not in AWARDABLE_BID_STATUSES:
            raise PreconditionFailedException(
                f"Supplier {supplier_id} has no submitted bid for RFQ {rfq.reference_number}"
            )

        other_awarded = (
            await self.db.execute(
                select(Bid.id).where(
                    Bid.rfq_id == rfq.id,
                    Bid.status == BidStatus.AWARDED,
                    Bid.id != bid.id,
                )
            )
        ).scalar_one_or_none()
        if other_awarded is not None:
            raise ConflictException(f"RFQ {rfq.reference_number} already has an awarded bid")
        return bid

    @staticmethod
    def _guard_cancel(metadata: dict) -> None:
        reason = metadata.get("cancellation_reason") or metadata.get("reason")
        if not reason or not str(reason).strip():
            raise ValidationException(
                "cancellation_reason is required to cancel an RFQ",
                details=[{"field": "cancellation_reason", "message": "required"}],
            )
        metadata["cancellation_reason"] = str(reason).strip()

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def _apply_transition(
        self,
        rfq: Rfq,
        target: RfqStatus,
        actor: AuthenticatedUser,
        metadata: dict,
        context: dict,
        is_override: bool = False,
    ) -> Rfq:
        old_status = rfq.status
        now = datetime.now(UTC)
        rfq.status = target

        if target == RfqStatus.PUBLISHED:
            rfq.bid_deadline = self._effective_deadline(rfq, metadata)
        elif target == RfqStatus.AWARDED:
            bid: Bid | None = context.get("bid")
            rfq.awarded_at = now
            if bid is not None:
                rfq.awarded_supplier_id = bid.supplier_company_id
                bid.status = BidStatus.AWARDED
                bid.awarded_at = now
                metadata["bid_id"] = str(bid.id)
            elif metadata.get("awarded_supplier_id"):
                rfq.awarded_supplier_id = uuid.UUID(str(metadata["awarded_supplier_id"]))
        elif target == RfqStatus.COMPLETED:
            rfq.completed_at = now
        elif target == RfqStatus.CANCELLED:
            rfq.cancelled_at = now
            rfq.cancellation_reason = metadata.get("cancellation_reason") or metadata.get(
                "reason"
            )
        elif target == RfqStatus.DRAFT and old_status == RfqStatus.CANCELLED:
            rfq.cancelled_at = None
            rfq.cancellation_reason = None

        self.db.add(
            RfqStatusHistory(
                rfq_id=rfq.id,
                from_status=old_status,
                to_status=target,
                changed_by=None if actor.is_system else actor.id,
                is_override=is_override,
                reason=metadata.get("cancellation_reason") or metadata.get("reason"),
                metadata_extra=metadata,
            )
        )
        await self.db.flush()

        await self._publish_status_events(rfq, old_status, target, actor, metadata, is_override)
        logger.info(
            "RFQ %s transitioned %s -> %s by %s%s",
            rfq.id,
            old_status.value,
            target.value,
            actor.id,
            " (override)" if is_override else "",
        )
        return rfq

    async def _publish_status_events(
        self,
        rfq: Rfq,
        old_status: RfqStatus,
        new_status: RfqStatus,
        actor: AuthenticatedUser,
        metadata: dict,
        is_override: bool,
    ) -> None:
        payload = {
            **self._event_base(rfq),
            "from_status": old_status.value,
            "to_status": new_status.value,
            "status_label": RFQ_MACHINE.label(new_status),
            "actor_id": str(actor.id),
            "is_override": is_override,
            "metadata": metadata,
        }
        if new_status in SUPPLIER_FACING_STATUSES:
            payload["supplier_company_ids"] = [
                str(company_id) for company_id in await self._supplier_company_ids(rfq.id)
            ]

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_RFQ_STATUS_CHANGED,
            aggregate_type="rfq",
            aggregate_id=str(rfq.id),
            actor_id=actor.id,
            payload=payload,
        )
        specific = STATUS_EVENT_MAP.get(new_status)
        if specific:
            await outbox.publish_event(
                event_type=specific,
                aggregate_type="rfq",
                aggregate_id=str(rfq.id),
                actor_id=actor.id,
                payload=payload,
            )

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    async def get_status_history(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser
    ) -> list[RfqStatusHistory]:
        await self.get_rfq(rfq_id, actor)
        result = await self.db.execute(
            select(RfqStatusHistory)
            .where(RfqStatusHistory.rfq_id == rfq_id)
            .order_by(RfqStatusHistory.created_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def lock_rfq(self, rfq_id: uuid.UUID) -> Rfq:
        """Load the RFQ with a row lock so concurrent transitions serialize."""
        result = await self.db.execute(
            select(Rfq)
            .where(Rfq.id == rfq_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rfq = result.scalar_one_or_none()
        if rfq is None:
            raise NotFoundException(f"RFQ {rfq_id} not found")
        return rfq

    @staticmethod
    def _ensure_owner(rfq: Rfq, actor: AuthenticatedUser) -> None:
        require_company_member(actor, rfq.company_id, action="manage this RFQ")

    @staticmethod
    def _effective_deadline(rfq: Rfq, metadata: dict) -> datetime:
        if metadata.get("bid_deadline"):
            value = metadata["bid_deadline"]
            if isinstance(value, datetime):
                return as_utc(value)
            try:
                return as_utc(datetime.fromisoformat(str(value)))
            except ValueError as exc:
                raise ValidationException(
                    "bid_deadline must be an ISO datetime",
                    details=[{"field": "bid_deadline", "message": "invalid datetime"}],
                ) from exc
        if rfq.bid_deadline is not None:
            return rfq.bid_deadline
        return datetime.now(UTC) + timedelta(days=settings.rfq_default_bid_deadline_days)

    async def _find_supplier_bid(
        self, rfq_id: uuid.UUID, supplier_company_id: uuid.UUID, bid_id: uuid.UUID | None
    ) -> Bid | None:
        query = select(Bid).where(
            Bid.rfq_id == rfq_id, Bid.supplier_company_id == supplier_company_id
        )
        if bid_id is not None:
            query = query.where(Bid.id == bid_id)
        result = await self.db.execute(query.with_for_update())
        return result.scalar_one_or_none()

    async def _supplier_company_ids(self, rfq_id: uuid.UUID) -> list[uuid.UUID]:
        """Invited suppliers plus every supplier that has a non-draft bid."""
        invited = (
            await self.db.execute(
                select(RfqInvitation.supplier_company_id).where(RfqInvitation.rfq_id == rfq_id)
            )
        ).scalars().all()
        bidders = (
            await self.db.execute(
                select(Bid.supplier_company_id).where(
                    Bid.rfq_id == rfq_id, Bid.status != BidStatus.DRAFT
                )
            )
        ).scalars().all()
        return list(dict.fromkeys([*invited, *bidders]))

    @staticmethod
    def _event_base(rfq: Rfq) -> dict:
        return {
            "rfq_id": str(rfq.id),
            "reference_number": rfq.reference_number,
            "title": rfq.title,
            "company_id": str(rfq.company_id),
            "created_by": str(rfq.created_by),
            "awarded_supplier_id": str(rfq.awarded_supplier_id)
            if rfq.awarded_supplier_id
            else None,
        }
