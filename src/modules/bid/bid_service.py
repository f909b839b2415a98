"""Bid lifecycle service: draft upsert, submission, evaluation, and award."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
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
from src.models.bid_item import BidItem
from src.models.enums import (
    BidStatus,
    InvitationStatus,
    LateBidPolicy,
    RfqStatus,
    UserRole,
)
from src.models.rfq import Rfq
from src.models.rfq_invitation import RfqInvitation
from src.modules.bid.constants import (
    BID_MACHINE,
    EVALUABLE_STATUSES,
    EVENT_BID_STATUS_CHANGED,
    EVENT_BID_SUBMITTED,
    MAX_SCORE,
    MIN_SCORE,
    RFQ_AWARD_SOURCE_STATUSES,
)
from src.modules.events.outbox_service import OutboxService
from src.modules.rfq.rfq_service import RfqService
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.permissions import require_company_member, require_role
from src.modules.workflow.sequences import BID_PREFIX, DocumentSequenceService
from src.modules.workflow.state_machine import AvailableTransition

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

_DRAFT_FIELDS = {
    "currency",
    "proposed_delivery_date",
    "technical_proposal",
    "commercial_terms",
    "notes",
}


def build_bid_items(items: list[dict]) -> tuple[list[BidItem], Decimal]:
    """Turn raw item dicts into BidItem rows and return them with their total.

    ``total_price`` defaults to quantity x unit_price when not supplied.
    """
    if not items:
        raise ValidationException(
            "A bid needs at least one item",
            details=[{"field": "items", "message": "must not be empty"}],
        )
    rows = []
    total = Decimal("0")
    for data in items:
        quantity = Decimal(str(data["quantity"]))
        unit_price = Decimal(str(data["unit_price"]))
        if quantity <= 0 or unit_price < 0:
            raise ValidationException(
                f"Invalid quantity or price for item '{data.get('item_name')}'"
            )
        if data.get("total_price") is not None:
            total_price = Decimal(str(data["total_price"]))
        else:
            total_price = (quantity * unit_price).quantize(_CENT, rounding=ROUND_HALF_UP)
        rows.append(
            BidItem(
                rfq_item_id=data.get("rfq_item_id"),
                item_name=data["item_name"],
                item_description=data.get("item_description"),
                quantity=quantity,
                unit_of_measure=data["unit_of_measure"],
                unit_price=unit_price,
                total_price=total_price,
                specifications=data.get("specifications"),
                notes=data.get("notes"),
            )
        )
        total += total_price
    return rows, total


def default_total_score(technical: Decimal, commercial: Decimal, delivery: Decimal) -> Decimal:
    """Unweighted mean of the three scores, rounded to two decimals."""
    return ((technical + commercial + delivery) / 3).quantize(_CENT, rounding=ROUND_HALF_UP)


class BidService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    async def save_draft(
        self,
        rfq_id: uuid.UUID,
        actor: AuthenticatedUser,
        items: list[dict],
        currency: str | None = None,
        proposed_delivery_date: datetime | None = None,
        technical_proposal: str | None = None,
        commercial_terms: str | None = None,
        notes: str | None = None,
    ) -> tuple[Bid, bool]:
        """Create the supplier's draft bid, or replace the existing draft.

        Returns ``(bid, created)``. A second draft for the same (rfq, supplier)
        updates the first one and fully replaces its items. Once the supplier
        has a non-draft bid, further drafts are rejected.
        """
        if not actor.is_supplier or actor.company_id is None:
            raise ForbiddenException("Only supplier users can place bids")

        rfq = await self._get_rfq(rfq_id)
        await self._ensure_supplier_eligible(rfq, actor.company_id)

        existing = await self._find_company_bid(rfq_id, actor.company_id, lock=True)
        if existing is not None and existing.status != BidStatus.DRAFT:
            raise ConflictException(
                f"Your company already has a {existing.status.value} bid "
                f"({existing.bid_number}) for this RFQ"
            )

        new_items, total_amount = build_bid_items(items)

        if existing is not None:
            bid = existing
            await self.db.execute(delete(BidItem).where(BidItem.bid_id == bid.id))
            created = False
        else:
            bid = Bid(
                id=uuid.uuid4(),
                bid_number=await self.sequences.next_number(BID_PREFIX),
                rfq_id=rfq_id,
                supplier_company_id=actor.company_id,
                status=BidStatus.DRAFT,
                metadata_extra={},
            )
            self.db.add(bid)
            created = True

        bid.submitted_by = actor.id
        bid.total_amount = total_amount
        bid.currency = currency or rfq.currency
        bid.proposed_delivery_date = proposed_delivery_date
        bid.technical_proposal = technical_proposal
        bid.commercial_terms = commercial_terms
        bid.notes = notes
        for row in new_items:
            row.bid_id = bid.id
            self.db.add(row)

        try:
            await self.db.flush()
        except IntegrityError as exc:
            if "uq_bids_rfq_supplier" in str(exc):
                raise ConflictException("A bid for this RFQ is already being created") from exc
            raise

        logger.info(
            "%s draft bid %s for RFQ %s (total %s)",
            "Created" if created else "Updated",
            bid.bid_number,
            rfq_id,
            total_amount,
        )
        return bid, created

    async def update_draft(
        self,
        bid_id: uuid.UUID,
        actor: AuthenticatedUser,
        items: list[dict] | None = None,
        **fields,
    ) -> Bid:
        """Edit a draft bid in place. Items, when given, replace the old ones."""
        bid = await self._lock_bid(bid_id)
        require_company_member(actor, bid.supplier_company_id, action="edit this bid")
        self._ensure_draft(bid)

        for key, value in fields.items():
            if key in _DRAFT_FIELDS:
                setattr(bid, key, value)
        if items is not None:
            new_items, total_amount = build_bid_items(items)
            await self.db.execute(delete(BidItem).where(BidItem.bid_id == bid.id))
            for row in new_items:
                row.bid_id = bid.id
                self.db.add(row)
            bid.total_amount = total_amount
        await self.db.flush()
        return bid

    async def delete_draft(self, bid_id: uuid.UUID, actor: AuthenticatedUser) -> None:
        bid = await self._lock_bid(bid_id)
        require_company_member(actor, bid.supplier_company_id, action="delete this bid")
        self._ensure_draft(bid)
        await self.db.delete(bid)
        await self.db.flush()
        logger.info("Deleted draft bid %s", bid.bid_number)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_bid(self, bid_id: uuid.UUID, actor: AuthenticatedUser | None = None) -> Bid:
        """Load a bid with its items; with ``actor``, only the two parties may read it."""
        result = await self.db.execute(
            select(Bid)
            .options(selectinload(Bid.items))
            .where(Bid.id == bid_id)
            .execution_options(populate_existing=True)
        )
        bid = result.scalar_one_or_none()
        if bid is None:
            raise NotFoundException(f"Bid {bid_id} not found")
        if actor is not None:
            await self._ensure_can_view(bid, actor)
        return bid

    async def _ensure_can_view(self, bid: Bid, actor: AuthenticatedUser) -> None:
        if actor.is_admin:
            return
        if actor.is_supplier:
            require_company_member(actor, bid.supplier_company_id, action="view this bid")
            return
        rfq = await self._get_rfq(bid.rfq_id)
        require_company_member(actor, rfq.company_id, action="view this bid")
        # Drafts stay private to the supplier
        if bid.status == BidStatus.DRAFT:
            raise NotFoundException(f"Bid {bid.id} not found")

    async def list_bids_for_rfq(
        self, rfq_id: uuid.UUID, actor: AuthenticatedUser
    ) -> list[Bid]:
        """Buyers see every non-draft bid, suppliers only their own company's."""
        rfq = await self._get_rfq(rfq_id)
        query = select(Bid).where(Bid.rfq_id == rfq_id)
        if actor.is_supplier:
            query = query.where(Bid.supplier_company_id == actor.company_id)
        else:
            require_company_member(actor, rfq.company_id, action="view bids for this RFQ")
            query = query.where(Bid.status != BidStatus.DRAFT)
        result = await self.db.execute(query.order_by(Bid.created_at.asc()))
        return list(result.scalars().all())

    async def get_available_transitions(
        self, bid_id: uuid.UUID, actor: AuthenticatedUser
    ) -> tuple[Bid, list[AvailableTransition]]:
        bid = await self.get_bid(bid_id)
        if actor.is_supplier:
            if actor.company_id != bid.supplier_company_id:
                return bid, []
        elif not actor.is_admin:
            rfq = await self._get_rfq(bid.rfq_id)
            if actor.company_id != rfq.company_id:
                return bid, []
        return bid, BID_MACHINE.available_transitions(bid.status, actor.role)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        bid_id: uuid.UUID,
        target: BidStatus,
        actor: AuthenticatedUser,
        metadata: dict | None = None,
    ) -> Bid:
        """Generic entry point that routes to the operation owning ``target``."""
        metadata = metadata or {}
        if target == BidStatus.SUBMITTED:
            return await self.submit(bid_id, actor)
        if target == BidStatus.UNDER_REVIEW:
            return await self.start_review(bid_id, actor)
        if target == BidStatus.AWARDED:
            return await self.award(bid_id, actor)
        if target == BidStatus.REJECTED:
            return await self.reject(bid_id, actor, metadata.get("reason"))
        if target == BidStatus.WITHDRAWN:
            return await self.withdraw(bid_id, actor, metadata.get("reason"))
        bid = await self.get_bid(bid_id)
        BID_MACHINE.check_transition(bid.status, target, actor.role)
        return bid

    async def submit(self, bid_id: uuid.UUID, actor: AuthenticatedUser) -> Bid:
        """draft -> submitted. Stamps submitted_at once and notifies the buyer."""
        bid = await self._lock_bid(bid_id)
        require_company_member(actor, bid.supplier_company_id, action="submit this bid")
        BID_MACHINE.check_transition(bid.status, BidStatus.SUBMITTED, actor.role)

        rfq = await self._get_rfq(bid.rfq_id)
        await self._ensure_supplier_eligible(rfq, bid.supplier_company_id)

        item_count = (
            await self.db.execute(
                select(func.count()).select_from(BidItem).where(BidItem.bid_id == bid.id)
            )
        ).scalar() or 0
        if item_count == 0:
            raise PreconditionFailedException("Cannot submit a bid without items")

        now = datetime.now(UTC)
        self._apply_late_bid_policy(bid, rfq, now)

        old_status = bid.status
        bid.status = BidStatus.SUBMITTED
        if bid.submitted_at is None:
            bid.submitted_at = now

        await self.db.execute(
            update(RfqInvitation)
            .where(
                RfqInvitation.rfq_id == rfq.id,
                RfqInvitation.supplier_company_id == bid.supplier_company_id,
            )
            .values(status=InvitationStatus.SUBMITTED, responded_at=now)
        )
        await self.db.flush()

        await OutboxService(self.db).publish_event(
            event_type=EVENT_BID_SUBMITTED,
            aggregate_type="bid",
            aggregate_id=str(bid.id),
            actor_id=actor.id,
            payload={
                **self._event_base(bid, rfq),
                "from_status": old_status.value,
                "to_status": BidStatus.SUBMITTED.value,
                "late": bool(bid.metadata_extra.get("late")),
            },
        )
        logger.info("Bid %s submitted for RFQ %s", bid.bid_number, rfq.reference_number)
        return bid

    async def start_review(self, bid_id: uuid.UUID, actor: AuthenticatedUser) -> Bid:
        bid, rfq = await self._lock_bid_as_buyer(bid_id, actor)
        return await self._simple_transition(bid, rfq, BidStatus.UNDER_REVIEW, actor)

    async def reject(
        self, bid_id: uuid.UUID, actor: AuthenticatedUser, reason: str | None = None
    ) -> Bid:
        bid, rfq = await self._lock_bid_as_buyer(bid_id, actor)
        BID_MACHINE.check_transition(bid.status, BidStatus.REJECTED, actor.role)
        bid.rejected_at = datetime.now(UTC)
        bid.rejection_reason = reason
        return await self._simple_transition(bid, rfq, BidStatus.REJECTED, actor, reason)

    async def withdraw(
        self, bid_id: uuid.UUID, actor: AuthenticatedUser, reason: str | None = None
    ) -> Bid:
        bid = await self._lock_bid(bid_id)
        require_company_member(actor, bid.supplier_company_id, action="withdraw this bid")
        BID_MACHINE.check_transition(bid.status, BidStatus.WITHDRAWN, actor.role)
        rfq = await self._get_rfq(bid.rfq_id)
        bid.withdrawn_at = datetime.now(UTC)
        return await self._simple_transition(bid, rfq, BidStatus.WITHDRAWN, actor, reason)

    async def award(self, bid_id: uuid.UUID, actor: AuthenticatedUser) -> Bid:
        """submitted/under_review -> awarded, moving the RFQ to awarded with it.

        Both rows are locked RFQ first, bid second (the same order the RFQ
        award path uses) and change in the caller's transaction, so a bid is
        never awarded without its RFQ. Awarding an already awarded bid
        returns it unchanged.
        """
        unlocked = await self.get_bid(bid_id)
        rfq_service = RfqService(self.db)
        rfq = await rfq_service.lock_rfq(unlocked.rfq_id)
        require_company_member(actor, rfq.company_id, action="award bids on this RFQ")
        bid = await self._lock_bid(bid_id)

        if bid.status == BidStatus.AWARDED:
            logger.info("Bid %s already awarded; nothing to do", bid.bid_number)
            return bid

        BID_MACHINE.check_transition(bid.status, BidStatus.AWARDED, actor.role)
        if rfq.status not in RFQ_AWARD_SOURCE_STATUSES:
            raise PreconditionFailedException(
                f"RFQ {rfq.reference_number} is '{rfq.status.value}' and cannot be awarded",
                details=[{"rfq_status": rfq.status.value}],
            )

        old_status = bid.status
        await rfq_service.award(
            rfq.id, actor, awarded_supplier_id=bid.supplier_company_id, bid_id=bid.id
        )
        # RfqService marks the bid awarded on the same identity-mapped row
        bid.status = BidStatus.AWARDED
        await self._publish_status_change(bid, rfq, old_status, actor)
        logger.info("Bid %s awarded on RFQ %s", bid.bid_number, rfq.reference_number)
        return bid

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(
        self,
        bid_id: uuid.UUID,
        actor: AuthenticatedUser,
        technical_score: Decimal,
        commercial_score: Decimal,
        delivery_score: Decimal,
        total_score: Decimal | None = None,
        evaluation_notes: str | None = None,
    ) -> Bid:
        """Record 1-10 scores on a submitted bid."""
        bid, _ = await self._lock_bid_as_buyer(bid_id, actor)
        if bid.status not in EVALUABLE_STATUSES:
            raise PreconditionFailedException(
                f"Only submitted bids can be evaluated (bid is '{bid.status.value}')"
            )

        scores = {
            "technical_score": Decimal(str(technical_score)),
            "commercial_score": Decimal(str(commercial_score)),
            "delivery_score": Decimal(str(delivery_score)),
        }
        if total_score is not None:
            scores["total_score"] = Decimal(str(total_score))
        for name, value in scores.items():
            if not MIN_SCORE <= value <= MAX_SCORE:
                raise ValidationException(
                    f"{name} must be between {MIN_SCORE} and {MAX_SCORE}",
                    details=[{"field": name, "message": f"got {value}"}],
                )

        bid.technical_score = scores["technical_score"]
        bid.commercial_score = scores["commercial_score"]
        bid.delivery_score = scores["delivery_score"]
        bid.total_score = scores.get("total_score") or default_total_score(
            scores["technical_score"], scores["commercial_score"], scores["delivery_score"]
        )
        bid.evaluation_notes = evaluation_notes
        bid.evaluated_by = actor.id
        bid.evaluated_at = datetime.now(UTC)
        await self.db.flush()
        logger.info("Bid %s evaluated (total score %s)", bid.bid_number, bid.total_score)
        return bid

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _simple_transition(
        self,
        bid: Bid,
        rfq: Rfq,
        target: BidStatus,
        actor: AuthenticatedUser,
        reason: str | None = None,
    ) -> Bid:
        BID_MACHINE.check_transition(bid.status, target, actor.role)
        old_status = bid.status
        bid.status = target
        await self.db.flush()
        await self._publish_status_change(bid, rfq, old_status, actor, reason)
        logger.info(
            "Bid %s transitioned %s -> %s", bid.bid_number, old_status.value, target.value
        )
        return bid

    async def _publish_status_change(
        self,
        bid: Bid,
        rfq: Rfq,
        old_status: BidStatus,
        actor: AuthenticatedUser,
        reason: str | None = None,
    ) -> None:
        await OutboxService(self.db).publish_event(
            event_type=EVENT_BID_STATUS_CHANGED,
            aggregate_type="bid",
            aggregate_id=str(bid.id),
            actor_id=actor.id,
            payload={
                **self._event_base(bid, rfq),
                "from_status": old_status.value,
                "to_status": bid.status.value,
                "status_label": BID_MACHINE.label(bid.status),
                "reason": reason,
            },
        )

    async def _ensure_supplier_eligible(self, rfq: Rfq, supplier_company_id: uuid.UUID) -> None:
        """Invited suppliers may bid once published; anyone may bid while bidding is open."""
        if rfq.status == RfqStatus.BIDDING_OPEN:
            return
        if rfq.status == RfqStatus.PUBLISHED:
            invitation = (
                await self.db.execute(
                    select(RfqInvitation.id).where(
                        RfqInvitation.rfq_id == rfq.id,
                        RfqInvitation.supplier_company_id == supplier_company_id,
                    )
                )
            ).scalar_one_or_none()
            if invitation is None:
                raise ForbiddenException(
                    "Your company is not invited to this RFQ. "
                    "Uninvited suppliers can bid once bidding is open."
                )
            return
        raise PreconditionFailedException(
            f"RFQ {rfq.reference_number} is not accepting bids (status '{rfq.status.value}')"
        )

    @staticmethod
    def _apply_late_bid_policy(bid: Bid, rfq: Rfq, now: datetime) -> None:
        if rfq.bid_deadline is None or now <= rfq.bid_deadline:
            return
        if LateBidPolicy(settings.late_bid_policy) == LateBidPolicy.REJECT:
            raise PreconditionFailedException(
                f"The bid deadline for RFQ {rfq.reference_number} has passed",
                details=[{"bid_deadline": rfq.bid_deadline.isoformat()}],
            )
        bid.metadata_extra = {**(bid.metadata_extra or {}), "late": True}
        logger.warning(
            "Bid %s submitted after deadline of RFQ %s", bid.bid_number, rfq.reference_number
        )

    @staticmethod
    def _ensure_draft(bid: Bid) -> None:
        if bid.status != BidStatus.DRAFT:
            raise BusinessRuleException(
                f"Bid {bid.bid_number} is '{bid.status.value}'; only draft bids can be changed"
            )

    async def _lock_bid_as_buyer(
        self, bid_id: uuid.UUID, actor: AuthenticatedUser
    ) -> tuple[Bid, Rfq]:
        require_role(actor, UserRole.BUYER, action="review bids")
        bid = await self._lock_bid(bid_id)
        rfq = await self._get_rfq(bid.rfq_id)
        require_company_member(actor, rfq.company_id, action="review bids on this RFQ")
        return bid, rfq

    async def _lock_bid(self, bid_id: uuid.UUID) -> Bid:
        result = await self.db.execute(
            select(Bid)
            .where(Bid.id == bid_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        bid = result.scalar_one_or_none()
        if bid is None:
            raise NotFoundException(f"Bid {bid_id} not found")
        return bid

    async def _find_company_bid(
        self, rfq_id: uuid.UUID, company_id: uuid.UUID, lock: bool = False
    ) -> Bid | None:
        query = select(Bid).where(Bid.rfq_id == rfq_id, Bid.supplier_company_id == company_id)
        if lock:
            query = query.with_for_update()
        return (await self.db.execute(query)).scalar_one_or_none()

    async def _get_rfq(self, rfq_id: uuid.UUID) -> Rfq:
        rfq = await self.db.get(Rfq, rfq_id)
        if rfq is None:
            raise NotFoundException(f"RFQ {rfq_id} not found")
        return rfq

    @staticmethod
    def _event_base(bid: Bid, rfq: Rfq) -> dict:
        return {
            "bid_id": str(bid.id),
            "bid_number": bid.bid_number,
            "rfq_id": str(rfq.id),
            "rfq_reference_number": rfq.reference_number,
            "rfq_title": rfq.title,
            "buyer_user_id": str(rfq.created_by),
            "supplier_company_id": str(bid.supplier_company_id),
            "supplier_user_id": str(bid.submitted_by),
            "total_amount": str(bid.total_amount),
            "currency": bid.currency,
        }
