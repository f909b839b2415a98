"""Purchase order API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import ModificationStatus, PurchaseOrderStatus
from src.modules.purchase_order.constants import PO_MACHINE
from src.modules.purchase_order.modification_service import ModificationService
from src.modules.purchase_order.purchase_order_service import PurchaseOrderService
from src.modules.purchase_order.schemas import (
    ApproveRequest,
    ConfirmDeliveryRequest,
    CreateFromBidRequest,
    CreateFromNegotiationRequest,
    ModificationCreate,
    ModificationDecision,
    ModificationResponse,
    PurchaseOrderResponse,
    PurchaseOrderStatusHistoryResponse,
    ReasonRequest,
)
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.workflow.actions import action_response, parse_status, transitions_response
from src.schemas.responses import ActionResponse, TransitionRequest, TransitionsResponse

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


def _po_action(message: str, po, user: AuthenticatedUser) -> ActionResponse:
    return action_response(
        message,
        po.status,
        PO_MACHINE,
        user.role,
        data={"purchase_order_id": str(po.id), "po_number": po.po_number},
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@router.post("/from-bid", response_model=PurchaseOrderResponse)
async def create_from_bid(
    body: CreateFromBidRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue the PO for an awarded bid. 201 when created, 200 when it already existed."""
    svc = PurchaseOrderService(db)
    po, created = await svc.create_from_bid(body.bid_id, user, **body.overrides())
    response.status_code = 201 if created else 200
    po = await svc.get_purchase_order(po.id)
    return PurchaseOrderResponse.model_validate(po)


@router.post("/from-negotiation", response_model=PurchaseOrderResponse)
async def create_from_negotiation(
    body: CreateFromNegotiationRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue the PO for a negotiation closed on an accepted offer."""
    svc = PurchaseOrderService(db)
    po, created = await svc.create_from_negotiation(
        body.negotiation_id, user, **body.overrides()
    )
    response.status_code = 201 if created else 200
    po = await svc.get_purchase_order(po.id)
    return PurchaseOrderResponse.model_validate(po)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[PurchaseOrderResponse])
async def list_purchase_orders(
    status: PurchaseOrderStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await PurchaseOrderService(db).list_purchase_orders(
        user, status=status, limit=limit, offset=offset
    )
    return [PurchaseOrderResponse.model_validate(po) for po in orders]


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).get_purchase_order(po_id, user)
    return PurchaseOrderResponse.model_validate(po)


@router.get("/{po_id}/history", response_model=list[PurchaseOrderStatusHistoryResponse])
async def get_purchase_order_history(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await PurchaseOrderService(db).get_status_history(po_id, user)
    return [PurchaseOrderStatusHistoryResponse.model_validate(r) for r in rows]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.get("/{po_id}/transitions", response_model=TransitionsResponse)
async def get_purchase_order_transitions(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po, transitions = await PurchaseOrderService(db).get_available_transitions(po_id, user)
    return transitions_response(po.id, po.status, PO_MACHINE, transitions)


@router.post("/{po_id}/transition", response_model=ActionResponse)
async def transition_purchase_order(
    po_id: uuid.UUID,
    body: TransitionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = parse_status(PurchaseOrderStatus, body.target_status)
    po = await PurchaseOrderService(db).transition(po_id, target, user, body.metadata)
    return _po_action(f"Purchase order moved to {PO_MACHINE.label(po.status)}", po, user)


@router.post("/{po_id}/force-transition", response_model=ActionResponse)
async def force_transition_purchase_order(
    po_id: uuid.UUID,
    body: TransitionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admin override to any other status."""
    target = parse_status(PurchaseOrderStatus, body.target_status)
    po = await PurchaseOrderService(db).force_transition(po_id, target, user, body.metadata)
    return _po_action(f"Purchase order forced to {PO_MACHINE.label(po.status)}", po, user)


@router.post("/{po_id}/submit-for-approval", response_model=ActionResponse)
async def submit_for_approval(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).submit_for_approval(po_id, user)
    return _po_action("Purchase order submitted for approval", po, user)


@router.post("/{po_id}/approve", response_model=ActionResponse)
async def approve_purchase_order(
    po_id: uuid.UUID,
    body: ApproveRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).approve(
        po_id, user, approved_amount=body.approved_amount, notes=body.notes
    )
    return _po_action("Purchase order approved", po, user)


@router.post("/{po_id}/reject", response_model=ActionResponse)
async def reject_purchase_order(
    po_id: uuid.UUID,
    body: ReasonRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).reject(po_id, user, body.reason)
    return _po_action("Purchase order rejected", po, user)


@router.post("/{po_id}/send", response_model=ActionResponse)
async def send_to_supplier(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).send_to_supplier(po_id, user)
    return _po_action("Purchase order sent to supplier", po, user)


@router.post("/{po_id}/acknowledge", response_model=ActionResponse)
async def acknowledge_purchase_order(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Supplier acknowledges receipt of the order."""
    po = await PurchaseOrderService(db).acknowledge(po_id, user)
    return _po_action("Purchase order acknowledged", po, user)


@router.post("/{po_id}/start", response_model=ActionResponse)
async def start_progress(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).start_progress(po_id, user)
    return _po_action("Fulfilment started", po, user)


@router.post("/{po_id}/deliver", response_model=ActionResponse)
async def confirm_delivery(
    po_id: uuid.UUID,
    body: ConfirmDeliveryRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Confirm delivery with photo/document references as proof."""
    po = await PurchaseOrderService(db).confirm_delivery(
        po_id,
        user,
        attachments=[a.model_dump(exclude_none=True) for a in body.attachments],
        notes=body.notes,
        actual_delivery_date=body.actual_delivery_date,
    )
    return _po_action("Delivery confirmed", po, user)


@router.post("/{po_id}/complete", response_model=ActionResponse)
async def complete_purchase_order(
    po_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).complete(po_id, user)
    return _po_action("Purchase order completed", po, user)


@router.post("/{po_id}/cancel", response_model=ActionResponse)
async def cancel_purchase_order(
    po_id: uuid.UUID,
    body: ReasonRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    po = await PurchaseOrderService(db).cancel(po_id, user, body.reason)
    return _po_action("Purchase order cancelled", po, user)


# ---------------------------------------------------------------------------
# Modifications
# ---------------------------------------------------------------------------


@router.get("/{po_id}/modifications", response_model=list[ModificationResponse])
async def list_modifications(
    po_id: uuid.UUID,
    status: ModificationStatus | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await ModificationService(db).list_modifications(po_id, user, status=status)
    return [ModificationResponse.model_validate(r) for r in rows]


@router.post("/{po_id}/modifications", response_model=ModificationResponse, status_code=201)
async def record_modification(
    po_id: uuid.UUID,
    body: ModificationCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change one field; issued orders keep the change pending until approved."""
    modification = await ModificationService(db).record_modification(
        po_id, body.field_name, body.new_value, user, reason=body.reason
    )
    return ModificationResponse.model_validate(modification)


@router.post(
    "/{po_id}/modifications/{modification_id}/approve",
    response_model=ModificationResponse,
)
async def approve_modification(
    po_id: uuid.UUID,
    modification_id: uuid.UUID,
    body: ModificationDecision,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    modification = await ModificationService(db).approve_modification(
        modification_id, user, notes=body.notes
    )
    return ModificationResponse.model_validate(modification)


@router.post(
    "/{po_id}/modifications/{modification_id}/reject",
    response_model=ModificationResponse,
)
async def reject_modification(
    po_id: uuid.UUID,
    modification_id: uuid.UUID,
    body: ModificationDecision,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    modification = await ModificationService(db).reject_modification(
        modification_id, user, notes=body.notes
    )
    return ModificationResponse.model_validate(modification)
