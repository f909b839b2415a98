"""RFQ API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import RfqStatus
from src.modules.rfq.constants import RFQ_MACHINE
from src.modules.rfq.rfq_service import RfqService
from src.modules.rfq.schemas import (
    AwardRequest,
    CancelRequest,
    InvitationCreate,
    InvitationResponse,
    PublishRequest,
    RfqCreate,
    RfqItemCreate,
    RfqItemResponse,
    RfqListResponse,
    RfqResponse,
    RfqStatusHistoryResponse,
    RfqUpdate,
)
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.workflow.actions import action_response, parse_status, transitions_response
from src.schemas.responses import ActionResponse, TransitionRequest, TransitionsResponse

router = APIRouter(prefix="/rfqs", tags=["rfqs"])


def _rfq_action(message: str, rfq, user: AuthenticatedUser) -> ActionResponse:
    return action_response(
        message,
        rfq.status,
        RFQ_MACHINE,
        user.role,
        data={"rfq_id": str(rfq.id), "reference_number": rfq.reference_number},
    )


# ---------------------------------------------------------------------------
# RFQ CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=RfqResponse, status_code=201)
async def create_rfq(
    body: RfqCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a new RFQ in draft status."""
    svc = RfqService(db)
    rfq = await svc.create_rfq(
        user,
        title=body.title,
        description=body.description,
        currency=body.currency,
        budget_min=body.budget_min,
        budget_max=body.budget_max,
        delivery_date=body.delivery_date,
        bid_deadline=body.bid_deadline,
        delivery_location=body.delivery_location,
        terms_conditions=body.terms_conditions,
        items=[item.model_dump() for item in body.items],
    )
    # Re-fetch so the response carries the items
    rfq = await svc.get_rfq(rfq.id)
    return RfqResponse.model_validate(rfq)


@router.get("/", response_model=RfqListResponse)
async def list_rfqs(
    status: RfqStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List RFQs visible to the caller's company."""
    items, total = await RfqService(db).list_rfqs(user, status=status, limit=limit, offset=offset)
    return RfqListResponse(
        items=[RfqResponse.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{rfq_id}", response_model=RfqResponse)
async def get_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).get_rfq(rfq_id, user)
    return RfqResponse.model_validate(rfq)


@router.patch("/{rfq_id}", response_model=RfqResponse)
async def update_rfq(
    rfq_id: uuid.UUID,
    body: RfqUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a draft RFQ."""
    svc = RfqService(db)
    await svc.update_rfq(rfq_id, user, **body.model_dump(exclude_unset=True))
    rfq = await svc.get_rfq(rfq_id)
    return RfqResponse.model_validate(rfq)


@router.delete("/{rfq_id}", status_code=204)
async def delete_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a draft RFQ that has no bids."""
    await RfqService(db).delete_rfq(rfq_id, user)


@router.post("/{rfq_id}/items", response_model=RfqItemResponse, status_code=201)
async def add_item(
    rfq_id: uuid.UUID,
    body: RfqItemCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await RfqService(db).add_item(rfq_id, user, **body.model_dump())
    return RfqItemResponse.model_validate(item)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@router.post("/{rfq_id}/invitations", response_model=list[InvitationResponse], status_code=201)
async def invite_suppliers(
    rfq_id: uuid.UUID,
    body: InvitationCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attach supplier companies to the RFQ's invitation list."""
    invitations = await RfqService(db).invite_suppliers(rfq_id, user, body.supplier_company_ids)
    return [InvitationResponse.model_validate(inv) for inv in invitations]


@router.get("/{rfq_id}/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    invitations = await RfqService(db).list_invitations(rfq_id, user)
    return [InvitationResponse.model_validate(inv) for inv in invitations]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.get("/{rfq_id}/transitions", response_model=TransitionsResponse)
async def get_rfq_transitions(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current status and the transitions open to the caller."""
    rfq, transitions = await RfqService(db).get_available_transitions(rfq_id, user)
    return transitions_response(rfq.id, rfq.status, RFQ_MACHINE, transitions)


@router.get("/{rfq_id}/history", response_model=list[RfqStatusHistoryResponse])
async def get_rfq_history(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Append-only status history, oldest first."""
    rows = await RfqService(db).get_status_history(rfq_id, user)
    return [RfqStatusHistoryResponse.model_validate(r) for r in rows]


@router.post("/{rfq_id}/transition", response_model=ActionResponse)
async def transition_rfq(
    rfq_id: uuid.UUID,
    body: TransitionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = parse_status(RfqStatus, body.target_status)
    rfq = await RfqService(db).transition(rfq_id, target, user, body.metadata)
    return _rfq_action(f"RFQ moved to {RFQ_MACHINE.label(rfq.status)}", rfq, user)


@router.post("/{rfq_id}/force-transition", response_model=ActionResponse)
async def force_transition_rfq(
    rfq_id: uuid.UUID,
    body: TransitionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admin override to any other status."""
    target = parse_status(RfqStatus, body.target_status)
    rfq = await RfqService(db).force_transition(rfq_id, target, user, body.metadata)
    return _rfq_action(f"RFQ forced to {RFQ_MACHINE.label(rfq.status)}", rfq, user)


@router.post("/{rfq_id}/publish", response_model=ActionResponse)
async def publish_rfq(
    rfq_id: uuid.UUID,
    body: PublishRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Publish a draft RFQ to its invited suppliers."""
    deadline = body.bid_deadline if body else None
    rfq = await RfqService(db).publish(rfq_id, user, bid_deadline=deadline)
    return _rfq_action("RFQ published", rfq, user)


@router.post("/{rfq_id}/open-bidding", response_model=ActionResponse)
async def open_bidding(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).open_bidding(rfq_id, user)
    return _rfq_action("Bidding opened", rfq, user)


@router.post("/{rfq_id}/close-bidding", response_model=ActionResponse)
async def close_bidding(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).close_bidding(rfq_id, user)
    return _rfq_action("Bidding closed", rfq, user)


@router.post("/{rfq_id}/start-evaluation", response_model=ActionResponse)
async def start_evaluation(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).start_evaluation(rfq_id, user)
    return _rfq_action("Evaluation started", rfq, user)


@router.post("/{rfq_id}/award", response_model=ActionResponse)
async def award_rfq(
    rfq_id: uuid.UUID,
    body: AwardRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Award the RFQ to a supplier with a submitted bid."""
    rfq = await RfqService(db).award(
        rfq_id, user, awarded_supplier_id=body.awarded_supplier_id, bid_id=body.bid_id
    )
    return _rfq_action("RFQ awarded", rfq, user)


@router.post("/{rfq_id}/complete", response_model=ActionResponse)
async def complete_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).complete(rfq_id, user)
    return _rfq_action("RFQ completed", rfq, user)


@router.post("/{rfq_id}/cancel", response_model=ActionResponse)
async def cancel_rfq(
    rfq_id: uuid.UUID,
    body: CancelRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).cancel(rfq_id, user, body.reason)
    return _rfq_action("RFQ cancelled", rfq, user)


@router.post("/{rfq_id}/reopen", response_model=ActionResponse)
async def reopen_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move a cancelled RFQ back to draft."""
    rfq = await RfqService(db).reopen(rfq_id, user)
    return _rfq_action("RFQ reopened as draft", rfq, user)
