"""Field-level modification ledger for issued purchase orders.

Draft orders are edited directly (the ledger row is recorded as approved).
Issued orders get a pending row that only changes the field once the buyer
approves it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.enums import ModificationStatus, PurchaseOrderStatus, UserRole
from src.models.purchase_order import PurchaseOrder
from src.models.purchase_order_modification import PurchaseOrderModification
from src.modules.events.outbox_service import OutboxService
from src.modules.purchase_order.constants import (
    EVENT_PO_MODIFICATION_REQUESTED,
    EVENT_PO_MODIFICATION_RESOLVED,
    MODIFIABLE_FIELDS,
    MODIFIABLE_STATUSES,
)
from src.modules.purchase_order.purchase_order_service import PurchaseOrderService
from src.modules.tenancy.auth import AuthenticatedUser
from src.modules.tenancy.permissions import require_company_member, require_role

logger = logging.getLogger(__name__)

_DATE_FIELDS = {"expected_delivery_date"}


def serialize_value(value) -> str | None:
    """Ledger values are stored as text."""
    if value is None:
        return None
    if isinstance(value, date | datetime):
        return value.isoformat()
    return str(value)


def _coerce(field_name: str, value: str | None):
    if value is None or field_name not in _DATE_FIELDS:
        return value
    try:
        return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValidationException(
            f"{field_name} must be an ISO date",
            details=[{"field": "new_value", "message": "expected YYYY-MM-DD"}],
        ) from exc


class ModificationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = PurchaseOrderService(db)

    async def record_modification(
        self,
        po_id: uuid.UUID,
        field_name: str,
        new_value,
        actor: AuthenticatedUser,
        reason: str | None = None,
    ) -> PurchaseOrderModification:
        """Record a change to one allow-listed field.

        Applied at once on a draft order; pending approval on an issued one.
        """
        if field_name not in MODIFIABLE_FIELDS:
            raise ValidationException(
                f"Field '{field_name}' cannot be modified",
                details=[
                    {
                        "field": "field_name",
                        "message": "allowed: " + ", ".join(sorted(MODIFIABLE_FIELDS)),
                    }
                ],
            )
        po = await self.orders.lock_purchase_order(po_id)
        self._ensure_party(po, actor)

        new_text = serialize_value(new_value)
        coerced = _coerce(field_name, new_text)
        old_text = serialize_value(getattr(po, field_name))

        if po.status == PurchaseOrderStatus.DRAFT:
            now = datetime.now(UTC)
            setattr(po, field_name, coerced)
            modification = PurchaseOrderModification(
                id=uuid.uuid4(),
                purchase_order_id=po.id,
                field_name=field_name,
                old_value=old_text,
                new_value=new_text,
                reason=reason,
                modified_by=actor.id,
                status=ModificationStatus.APPROVED,
                approved_by=actor.id,
                approved_at=now,
                approval_notes="Applied directly to draft order",
            )
            self.db.add(modification)
            await self.db.flush()
            logger.info("Applied %s change to draft PO %s", field_name, po.po_number)
            return modification

        if po.status not in MODIFIABLE_STATUSES:
            raise PreconditionFailedException(
                f"Purchase order in status '{po.status.value}' cannot be modified",
                details=[{"allowed_statuses": sorted(s.value for s in MODIFIABLE_STATUSES)}],
            )

        modification = PurchaseOrderModification(
            id=uuid.uuid4(),
            purchase_order_id=po.id,
            field_name=field_name,
            old_value=old_text,
            new_value=new_text,
            reason=reason,
            modified_by=actor.id,
            status=ModificationStatus.PENDING,
        )
        self.db.add(modification)
        await self.db.flush()

        await OutboxService(self.db).publish_event(
            event_type=EVENT_PO_MODIFICATION_REQUESTED,
            aggregate_type="purchase_order",
            aggregate_id=str(po.id),
            actor_id=actor.id,
            payload={
                **self._event_base(po, modification),
                "requested_by": str(actor.id),
            },
        )
        logger.info(
            "Recorded pending %s modification %s on PO %s",
            field_name,
            modification.id,
            po.po_number,
        )
        return modification

    async def approve_modification(
        self,
        modification_id: uuid.UUID,
        actor: AuthenticatedUser,
        notes: str | None = None,
    ) -> PurchaseOrderModification:
        modification, po = await self._lock_pending(modification_id, actor)

        current = serialize_value(getattr(po, modification.field_name))
        if current != modification.old_value:
            raise PreconditionFailedException(
                f"{modification.field_name} changed since this modification was recorded",
                details=[{"recorded": modification.old_value, "current": current}],
            )
        setattr(
            po,
            modification.field_name,
            _coerce(modification.field_name, modification.new_value),
        )
        return await self._resolve(modification, po, actor, ModificationStatus.APPROVED, notes)

    async def reject_modification(
        self,
        modification_id: uuid.UUID,
        actor: AuthenticatedUser,
        notes: str | None = None,
    ) -> PurchaseOrderModification:
        modification, po = await self._lock_pending(modification_id, actor)
        return await self._resolve(modification, po, actor, ModificationStatus.REJECTED, notes)

    async def list_modifications(
        self,
        po_id: uuid.UUID,
        actor: AuthenticatedUser,
        status: ModificationStatus | None = None,
    ) -> list[PurchaseOrderModification]:
        await self.orders.get_purchase_order(po_id, actor)
        query = select(PurchaseOrderModification).where(
            PurchaseOrderModification.purchase_order_id == po_id
        )
        if status is not None:
            query = query.where(PurchaseOrderModification.status == status)
        result = await self.db.execute(query.order_by(PurchaseOrderModification.created_at.asc()))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lock_pending(
        self, modification_id: uuid.UUID, actor: AuthenticatedUser
    ) -> tuple[PurchaseOrderModification, PurchaseOrder]:
        require_role(actor, UserRole.BUYER, action="resolve purchase order modifications")
        unlocked = await self.db.get(PurchaseOrderModification, modification_id)
        if unlocked is None:
            raise NotFoundException(f"Modification {modification_id} not found")

        # Order row first so approvals serialize with transitions on the same PO
        po = await self.orders.lock_purchase_order(unlocked.purchase_order_id)
        require_company_member(actor, po.buyer_company_id, action="resolve modifications")
        modification = (
            await self.db.execute(
                select(PurchaseOrderModification)
                .where(PurchaseOrderModification.id == modification_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        if modification.status != ModificationStatus.PENDING:
            raise PreconditionFailedException(
                f"Modification is already {modification.status.value}"
            )
        return modification, po

    async def _resolve(
        self,
        modification: PurchaseOrderModification,
        po: PurchaseOrder,
        actor: AuthenticatedUser,
        status: ModificationStatus,
        notes: str | None,
    ) -> PurchaseOrderModification:
        modification.status = status
        modification.approved_by = actor.id
        modification.approved_at = datetime.now(UTC)
        modification.approval_notes = notes
        await self.db.flush()

        await OutboxService(self.db).publish_event(
            event_type=EVENT_PO_MODIFICATION_RESOLVED,
            aggregate_type="purchase_order",
            aggregate_id=str(po.id),
            actor_id=actor.id,
            payload={
                **self._event_base(po, modification),
                "resolution": status.value,
                "notes": notes,
            },
        )
        logger.info(
            "Modification %s on PO %s %s by %s",
            modification.id,
            po.po_number,
            status.value,
            actor.id,
        )
        return modification

    @staticmethod
    def _ensure_party(po: PurchaseOrder, actor: AuthenticatedUser) -> None:
        company_id = po.supplier_company_id if actor.is_supplier else po.buyer_company_id
        require_company_member(actor, company_id, action="modify this order")

    @staticmethod
    def _event_base(po: PurchaseOrder, modification: PurchaseOrderModification) -> dict:
        return {
            "purchase_order_id": str(po.id),
            "po_number": po.po_number,
            "buyer_company_id": str(po.buyer_company_id),
            "supplier_company_id": str(po.supplier_company_id),
            "buyer_user_id": str(po.created_by),
            "modification_id": str(modification.id),
            "field_name": modification.field_name,
            "old_value": modification.old_value,
            "new_value": modification.new_value,
            "modified_by": str(modification.modified_by),
        }
