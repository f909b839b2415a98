"""Purchase order workflow: derivation from bids and the PO state machine."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import PurePosixPath

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.exceptions import (
    ConflictException,
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.bid import Bid
from src.models.bid_item import BidItem
from src.models.enums import (
    BidStatus,
    NegotiationStatus,
    OfferStatus,
    PurchaseOrderStatus,
    UserRole,
)
from src.models.negotiation import Negotiation
from src.models.negotiation_message import NegotiationMessage
from src.models.purchase_order import PurchaseOrder
from src.models.purchase_order_item import PurchaseOrderItem
from src.models.purchase_order_status_history import PurchaseOrderStatusHistory
from src.models.rfq import Rfq
from src.modules.events.outbox_service import OutboxService
from src.modules.purchase_order.constants import (
    APPROVABLE_STATUSES,
    EVENT_PO_CREATED,
    EVENT_PO_STATUS_CHANGED,
    PO_MACHINE,
    STATUS_TIMESTAMP_FIELDS,
)
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.permissions import require_company_member, require_role
from src.modules.workflow.sequences import PO_PREFIX, DocumentSequenceService
from src.modules.workflow.state_machine import AvailableTransition

logger = logging.getLogger(__name__)


def validate_delivery_attachments(attachments: list[dict] | None) -> list[dict]:
    """Check delivery proof references against the photo/document limits.

    Each attachment is a reference dict with ``file_name``, ``size`` (bytes)
    and optionally ``url``. The kind is decided by the file extension.
    """
    photos: list[dict] = []
    documents: list[dict] = []
    photo_types = settings.delivery_photo_types_list
    document_types = settings.delivery_document_types_list

    for attachment in attachments or []:
        file_name = str(attachment.get("file_name") or "")
        extension = PurePosixPath(file_name).suffix.lower().lstrip(".")
        size = int(attachment.get("size") or 0)

        if extension in photo_types:
            kind, limit, bucket = "photo", settings.delivery_max_photo_bytes, photos
        elif extension in document_types:
            kind, limit, bucket = "document", settings.delivery_max_document_bytes, documents
        else:
            raise ValidationException(
                f"Unsupported attachment type for '{file_name}'",
                details=[
                    {
                        "field": "attachments",
                        "message": "allowed: " + ", ".join(photo_types + document_types),
                    }
                ],
            )
        if size <= 0 or size > limit:
            raise ValidationException(
                f"Attachment '{file_name}' must be between 1 byte and {limit} bytes",
                details=[{"field": "attachments", "message": f"size {size}"}],
            )
        bucket.append({**attachment, "file_name": file_name, "size": size, "kind": kind})

    if len(photos) > settings.delivery_max_photos:
        raise ValidationException(
            f"At most {settings.delivery_max_photos} delivery photos are allowed"
        )
    if len(documents) > settings.delivery_max_documents:
        raise ValidationException(
            f"At most {settings.delivery_max_documents} delivery documents are allowed"
        )
    return photos + documents


def parse_delivery_date(value, default: date) -> date:
    """Read ``actual_delivery_date`` from transition metadata (ISO date or datetime)."""
    if not value:
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError as exc:
        raise ValidationException(
            "actual_delivery_date must be an ISO date",
            details=[{"field": "actual_delivery_date", "message": "expected YYYY-MM-DD"}],
        ) from exc


class PurchaseOrderService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    async def create_from_bid(
        self,
        bid_id: uuid.UUID,
        actor: AuthenticatedUser,
        delivery_address: str | None = None,
        payment_terms: str | None = None,
        notes: str | None = None,
    ) -> tuple[PurchaseOrder, bool]:
        """Issue the PO for an awarded bid. Returns ``(po, created)``.

        Idempotent on the bid: a second call returns the existing order
        untouched, ignoring any overrides passed with it.
        """
        require_role(actor, UserRole.BUYER, action="create purchase orders")
        bid = await self._lock_bid(bid_id)
        rfq = await self._get_rfq(bid.rfq_id)
        require_company_member(actor, rfq.company_id, action="order against this RFQ")

        negotiation = (
            await self.db.execute(select(Negotiation).where(Negotiation.bid_id == bid.id))
        ).scalar_one_or_none()

        existing = await self._find_for_bid(bid.id)
        if existing is not None:
            await self._backfill_negotiation(negotiation, existing)
            return existing, False

        if bid.status != BidStatus.AWARDED:
            raise PreconditionFailedException(
                f"Bid {bid.bid_number} is '{bid.status.value}'; "
                "only awarded bids can become purchase orders"
            )
        accepted = await self._accepted_offer(negotiation) if negotiation is not None else None
        po = await self._create(
            bid,
            rfq,
            actor,
            negotiation if accepted else None,
            accepted,
            delivery_address=delivery_address,
            payment_terms=payment_terms,
            notes=notes,
        )
        return po, True

    async def create_from_negotiation(
        self,
        negotiation_id: uuid.UUID,
        actor: AuthenticatedUser,
        delivery_address: str | None = None,
        payment_terms: str | None = None,
        notes: str | None = None,
    ) -> tuple[PurchaseOrder, bool]:
        """Issue the PO for a negotiation closed on an accepted offer."""
        require_role(actor, UserRole.BUYER, action="create purchase orders")
        unlocked = await self.db.get(Negotiation, negotiation_id)
        if unlocked is None:
            raise NotFoundException(f"Negotiation {negotiation_id} not found")

        # Bid first, negotiation second, the same order create_from_bid uses
        bid = await self._lock_bid(unlocked.bid_id)
        negotiation = (
            await self.db.execute(
                select(Negotiation)
                .where(Negotiation.id == negotiation_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        rfq = await self._get_rfq(bid.rfq_id)
        require_company_member(actor, rfq.company_id, action="order against this RFQ")

        existing = await self._find_for_bid(bid.id)
        if existing is not None:
            await self._backfill_negotiation(negotiation, existing)
            return existing, False

        accepted = await self._accepted_offer(negotiation)
        if negotiation.status != NegotiationStatus.CLOSED or accepted is None:
            raise PreconditionFailedException(
                "Negotiation must be closed on an accepted offer before ordering",
                details=[{"negotiation_status": negotiation.status.value}],
            )
        po = await self._create(
            bid,
            rfq,
            actor,
            negotiation,
            accepted,
            delivery_address=delivery_address,
            payment_terms=payment_terms,
            notes=notes,
        )
        return po, True

    async def _create(
        self,
        bid: Bid,
        rfq: Rfq,
        actor: AuthenticatedUser,
        negotiation: Negotiation | None,
        accepted: NegotiationMessage | None,
        delivery_address: str | None = None,
        payment_terms: str | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        bid_items = (
            await self.db.execute(select(BidItem).where(BidItem.bid_id == bid.id))
        ).scalars().all()
        now = datetime.now(UTC)
        auto_send = settings.po_auto_send_to_supplier
        status = (
            PurchaseOrderStatus.SENT_TO_SUPPLIER if auto_send else PurchaseOrderStatus.PENDING_APPROVAL
        )
        expected = bid.proposed_delivery_date or rfq.delivery_date

        po = PurchaseOrder(
            id=uuid.uuid4(),
            po_number=await self.sequences.next_number(PO_PREFIX),
            rfq_id=rfq.id,
            bid_id=bid.id,
            negotiation_id=negotiation.id if negotiation is not None else None,
            supplier_company_id=bid.supplier_company_id,
            buyer_company_id=rfq.company_id,
            created_by=actor.id,
            status=status,
            total_amount=bid.total_amount,
            currency=bid.currency,
            negotiated_terms=accepted.offer_data if accepted is not None else None,
            order_date=now.date(),
            expected_delivery_date=expected.date() if expected else None,
            delivery_address=(
                delivery_address or rfq.delivery_location or settings.po_default_delivery_address
            ),
            payment_terms=payment_terms or settings.po_default_payment_terms,
            notes=notes,
            terms_conditions=rfq.terms_conditions,
            requires_approval=not auto_send,
            approval_level=1,
            current_approval_step=0,
            delivery_attachments=[],
            sent_at=now if auto_send else None,
        )
        self.db.add(po)
        for item in bid_items:
            self.db.add(
                PurchaseOrderItem(
                    purchase_order_id=po.id,
                    rfq_item_id=item.rfq_item_id,
                    item_name=item.item_name,
                    item_description=item.item_description,
                    quantity=item.quantity,
                    unit_of_measure=item.unit_of_measure,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    specifications=item.specifications,
                    notes=item.notes,
                )
            )
        self.db.add(
            PurchaseOrderStatusHistory(
                purchase_order_id=po.id,
                from_status=None,
                to_status=status,
                changed_by=actor.id,
                notes=f"Created from bid {bid.bid_number}",
                metadata_extra={"negotiation_id": str(negotiation.id)} if negotiation else {},
            )
        )
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictException(
                f"A purchase order for bid {bid.bid_number} already exists"
            ) from exc
        # The order row must exist before the negotiation points at it
        await self._backfill_negotiation(negotiation, po)

        await OutboxService(self.db).publish_event(
            event_type=EVENT_PO_CREATED,
            aggregate_type="purchase_order",
            aggregate_id=str(po.id),
            actor_id=actor.id,
            payload={
                **self._event_base(po),
                "status": status.value,
                "bid_number": bid.bid_number,
                "supplier_user_id": str(bid.submitted_by),
                "rfq_title": rfq.title,
            },
        )
        logger.info(
            "Created purchase order %s from bid %s (status %s, total %s %s)",
            po.po_number,
            bid.bid_number,
            status.value,
            po.total_amount,
            po.currency,
        )
        return po

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_purchase_order(
        self, po_id: uuid.UUID, actor: AuthenticatedUser | None = None
    ) -> PurchaseOrder:
        """Load a PO with its items; with ``actor``, only the buyer or supplier company may read it."""
        result = await self.db.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(PurchaseOrder.id == po_id)
            .execution_options(populate_existing=True)
        )
        po = result.scalar_one_or_none()
        if po is None:
            raise NotFoundException(f"Purchase order {po_id} not found")
        if actor is not None:
            self._ensure_party(po, actor, action="view this order")
        return po

    async def list_purchase_orders(
        self,
        actor: AuthenticatedUser,
        status: PurchaseOrderStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[PurchaseOrder]:
        query = select(PurchaseOrder)
        if actor.is_supplier:
            query = query.where(PurchaseOrder.supplier_company_id == actor.company_id)
        elif not actor.is_admin:
            query = query.where(PurchaseOrder.buyer_company_id == actor.company_id)
        if status is not None:
            query = query.where(PurchaseOrder.status == status)
        result = await self.db.execute(
            query.order_by(PurchaseOrder.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    async def get_available_transitions(
        self, po_id: uuid.UUID, actor: AuthenticatedUser
    ) -> tuple[PurchaseOrder, list[AvailableTransition]]:
        po = await self.get_purchase_order(po_id)
        if not self._is_party(po, actor):
            return po, []
        return po, PO_MACHINE.available_transitions(po.status, actor.role)

    async def get_status_history(
        self, po_id: uuid.UUID, actor: AuthenticatedUser
    ) -> list[PurchaseOrderStatusHistory]:
        await self.get_purchase_order(po_id, actor)
        result = await self.db.execute(
            select(PurchaseOrderStatusHistory)
            .where(PurchaseOrderStatusHistory.purchase_order_id == po_id)
            .order_by(PurchaseOrderStatusHistory.created_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        po_id: uuid.UUID,
        target: PurchaseOrderStatus,
        actor: AuthenticatedUser,
        metadata: dict | None = None,
    ) -> PurchaseOrder:
        """Validate and apply ``target`` under the row lock."""
        metadata = dict(metadata or {})
        po = await self.lock_purchase_order(po_id)
        self._ensure_party(po, actor)
        PO_MACHINE.check_transition(po.status, target, actor.role)
        self._run_guards(po, target, actor, metadata)
        return await self._apply_transition(po, target, actor, metadata)

    async def force_transition(
        self,
        po_id: uuid.UUID,
        target: PurchaseOrderStatus,
        actor: AuthenticatedUser,
        metadata: dict | None = None,
    ) -> PurchaseOrder:
        """Admin override: any other status, no table check and no guards."""
        metadata = dict(metadata or {})
        po = await self.lock_purchase_order(po_id)
        PO_MACHINE.check_force_transition(po.status, target, actor.role)
        return await self._apply_transition(po, target, actor, metadata, is_override=True)

    # Convenience wrappers -------------------------------------------------

    async def submit_for_approval(self, po_id: uuid.UUID, actor: AuthenticatedUser) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.PENDING_APPROVAL, actor)

    async def approve(
        self,
        po_id: uuid.UUID,
        actor: AuthenticatedUser,
        approved_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        metadata: dict = {"notes": notes}
        if approved_amount is not None:
            metadata["approved_amount"] = str(approved_amount)
        return await self.transition(po_id, PurchaseOrderStatus.APPROVED, actor, metadata)

    async def reject(
        self, po_id: uuid.UUID, actor: AuthenticatedUser, reason: str
    ) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.REJECTED, actor, {"reason": reason})

    async def send_to_supplier(self, po_id: uuid.UUID, actor: AuthenticatedUser) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.SENT_TO_SUPPLIER, actor)

    async def acknowledge(self, po_id: uuid.UUID, actor: AuthenticatedUser) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.ACKNOWLEDGED, actor)

    async def start_progress(self, po_id: uuid.UUID, actor: AuthenticatedUser) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.IN_PROGRESS, actor)

    async def confirm_delivery(
        self,
        po_id: uuid.UUID,
        actor: AuthenticatedUser,
        attachments: list[dict] | None = None,
        notes: str | None = None,
        actual_delivery_date: date | None = None,
    ) -> PurchaseOrder:
        metadata = {
            "attachments": attachments or [],
            "notes": notes,
            "actual_delivery_date": actual_delivery_date.isoformat()
            if actual_delivery_date
            else None,
        }
        return await self.transition(po_id, PurchaseOrderStatus.DELIVERED, actor, metadata)

    async def complete(self, po_id: uuid.UUID, actor: AuthenticatedUser) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.COMPLETED, actor)

    async def cancel(self, po_id: uuid.UUID, actor: AuthenticatedUser, reason: str) -> PurchaseOrder:
        return await self.transition(po_id, PurchaseOrderStatus.CANCELLED, actor, {"reason": reason})

    # ------------------------------------------------------------------
    # Guards and side effects
    # ------------------------------------------------------------------

    @staticmethod
    def _run_guards(
        po: PurchaseOrder,
        target: PurchaseOrderStatus,
        actor: AuthenticatedUser,
        metadata: dict,
    ) -> None:
        if target == PurchaseOrderStatus.APPROVED:
            if po.status not in APPROVABLE_STATUSES:
                raise PreconditionFailedException(
                    f"Purchase order in status '{po.status.value}' cannot be approved"
                )
            if metadata.get("approved_amount") is not None:
                try:
                    amount = Decimal(str(metadata["approved_amount"]))
                except ArithmeticError as exc:
                    raise ValidationException("approved_amount must be a number") from exc
                if amount <= 0:
                    raise ValidationException(
                        "approved_amount must be positive",
                        details=[{"field": "approved_amount", "message": "must be > 0"}],
                    )
        elif target in (PurchaseOrderStatus.REJECTED, PurchaseOrderStatus.CANCELLED):
            reason = str(metadata.get("reason") or "").strip()
            if not reason:
                raise ValidationException(
                    f"A reason is required to move a purchase order to {target.value}",
                    details=[{"field": "reason", "message": "required"}],
                )
            metadata["reason"] = reason
        elif target == PurchaseOrderStatus.DELIVERED:
            metadata["attachments"] = validate_delivery_attachments(metadata.get("attachments"))

    async def _apply_transition(
        self,
        po: PurchaseOrder,
        target: PurchaseOrderStatus,
        actor: AuthenticatedUser,
        metadata: dict,
        is_override: bool = False,
    ) -> PurchaseOrder:
        old_status = po.status
        now = datetime.now(UTC)
        delivered_on = (
            parse_delivery_date(metadata.get("actual_delivery_date"), now.date())
            if target == PurchaseOrderStatus.DELIVERED
            else None
        )
        po.status = target

        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            setattr(po, timestamp_field, now)

        if target == PurchaseOrderStatus.APPROVED:
            po.approved_amount = (
                Decimal(str(metadata["approved_amount"]))
                if metadata.get("approved_amount") is not None
                else po.total_amount
            )
            po.approved_by = actor.id
            po.approved_at = now
            po.approval_notes = metadata.get("notes")
            po.current_approval_step = (po.current_approval_step or 0) + 1
        elif target == PurchaseOrderStatus.REJECTED:
            po.rejection_reason = metadata.get("reason")
            po.rejected_by = actor.id
        elif target == PurchaseOrderStatus.CANCELLED:
            po.cancellation_reason = metadata.get("reason")
        elif target == PurchaseOrderStatus.DELIVERED:
            po.delivery_attachments = list(metadata.get("attachments") or [])
            po.delivery_notes = metadata.get("notes")
            po.actual_delivery_date = delivered_on
        elif target == PurchaseOrderStatus.DRAFT and old_status == PurchaseOrderStatus.REJECTED:
            po.rejection_reason = None
            po.rejected_by = None
            po.rejected_at = None

        self.db.add(
            PurchaseOrderStatusHistory(
                purchase_order_id=po.id,
                from_status=old_status,
                to_status=target,
                changed_by=None if actor.is_system else actor.id,
                is_override=is_override,
                notes=metadata.get("reason") or metadata.get("notes"),
                metadata_extra={k: v for k, v in metadata.items() if v is not None},
            )
        )
        await self.db.flush()

        await OutboxService(self.db).publish_event(
            event_type=EVENT_PO_STATUS_CHANGED,
            aggregate_type="purchase_order",
            aggregate_id=str(po.id),
            actor_id=actor.id,
            payload={
                **self._event_base(po),
                "from_status": old_status.value,
                "to_status": target.value,
                "status_label": PO_MACHINE.label(target),
                "actor_id": str(actor.id),
                "actor_role": actor.role.value,
                "is_override": is_override,
                "reason": metadata.get("reason"),
            },
        )
        logger.info(
            "Purchase order %s transitioned %s -> %s by %s%s",
            po.po_number,
            old_status.value,
            target.value,
            actor.id,
            " (override)" if is_override else "",
        )
        return po

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def lock_purchase_order(self, po_id: uuid.UUID) -> PurchaseOrder:
        result = await self.db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == po_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        po = result.scalar_one_or_none()
        if po is None:
            raise NotFoundException(f"Purchase order {po_id} not found")
        return po

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

    async def _get_rfq(self, rfq_id: uuid.UUID) -> Rfq:
        rfq = await self.db.get(Rfq, rfq_id)
        if rfq is None:
            raise NotFoundException(f"RFQ {rfq_id} not found")
        return rfq

    async def _find_for_bid(self, bid_id: uuid.UUID) -> PurchaseOrder | None:
        result = await self.db.execute(
            select(PurchaseOrder).where(PurchaseOrder.bid_id == bid_id)
        )
        return result.scalar_one_or_none()

    async def _accepted_offer(self, negotiation: Negotiation) -> NegotiationMessage | None:
        if negotiation.accepted_offer_message_id is None:
            return None
        message = await self.db.get(NegotiationMessage, negotiation.accepted_offer_message_id)
        if message is None or message.offer_status != OfferStatus.ACCEPTED:
            return None
        return message

    async def _backfill_negotiation(
        self, negotiation: Negotiation | None, po: PurchaseOrder
    ) -> None:
        if negotiation is None or negotiation.purchase_order_id is not None:
            return
        negotiation.purchase_order_id = po.id
        await self.db.flush()
        logger.info("Linked negotiation %s to purchase order %s", negotiation.id, po.po_number)

    @staticmethod
    def _is_party(po: PurchaseOrder, actor: AuthenticatedUser) -> bool:
        if actor.is_admin:
            return True
        if actor.is_supplier:
            return actor.company_id == po.supplier_company_id
        return actor.company_id == po.buyer_company_id

    @staticmethod
    def _ensure_party(
        po: PurchaseOrder, actor: AuthenticatedUser, action: str = "act on this order"
    ) -> None:
        company_id = po.supplier_company_id if actor.is_supplier else po.buyer_company_id
        require_company_member(actor, company_id, action=action)

    @staticmethod
    def _event_base(po: PurchaseOrder) -> dict:
        return {
            "purchase_order_id": str(po.id),
            "po_number": po.po_number,
            "rfq_id": str(po.rfq_id),
            "bid_id": str(po.bid_id),
            "buyer_company_id": str(po.buyer_company_id),
            "supplier_company_id": str(po.supplier_company_id),
            "buyer_user_id": str(po.created_by),
            "total_amount": str(po.total_amount),
            "currency": po.currency,
        }
