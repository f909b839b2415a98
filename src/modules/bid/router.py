"""Bid API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import BidStatus
from src.modules.bid.bid_service import BidService
from src.modules.bid.constants import BID_MACHINE
from src.modules.bid.schemas import (
    BidDraftRequest,
    BidDraftUpdate,
    BidEvaluationRequest,
    BidReasonRequest,
    BidResponse,
)
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.modules.workflow.actions import action_response, parse_status, transitions_response
from src.schemas.responses import ActionResponse, TransitionRequest, TransitionsResponse

router = APIRouter(tags=["bids"])


def _bid_action(message: str, bid, user: AuthenticatedUser) -> ActionResponse:
    return action_response(
        message,
        bid.status,
        BID_MACHINE,
        user.role,
        data={"bid_id": str(bid.id), "bid_number": bid.bid_number},
    )


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


@router.post("/rfqs/{rfq_id}/bids", response_model=BidResponse)
async def save_bid_draft(
    rfq_id: uuid.UUID,
    body: BidDraftRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the caller's draft bid. 201 on create, 200 on update."""
    svc = BidService(db)
    bid, created = await svc.save_draft(
        rfq_id,
        user,
        items=[item.model_dump() for item in body.items],
        currency=body.currency,
        proposed_delivery_date=body.proposed_delivery_date,
        technical_proposal=body.technical_proposal,
        commercial_terms=body.commercial_terms,
        notes=body.notes,
    )
    response.status_code = 201 if created else 200
    bid = await svc.get_bid(bid.id)
    return BidResponse.model_validate(bid)


@router.get("/rfqs/{rfq_id}/bids", response_model=list[BidResponse])
async def list_bids(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List bids on an RFQ visible to the caller."""
    bids = await BidService(db).list_bids_for_rfq(rfq_id, user)
    return [BidResponse.model_validate(b) for b in bids]


@router.get("/bids/{bid_id}", response_model=BidResponse)
async def get_bid(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BidService(db).get_bid(bid_id, user)
    return BidResponse.model_validate(bid)


@router.patch("/bids/{bid_id}", response_model=BidResponse)
async def update_bid_draft(
    bid_id: uuid.UUID,
    body: BidDraftUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit a draft bid."""
    svc = BidService(db)
    fields = body.model_dump(exclude_unset=True, exclude={"items"})
    items = [item.model_dump() for item in body.items] if body.items is not None else None
    bid = await svc.update_draft(bid_id, user, items=items, **fields)
    bid = await svc.get_bid(bid.id)
    return BidResponse.model_validate(bid)


@router.delete("/bids/{bid_id}", status_code=204)
async def delete_bid_draft(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await BidService(db).delete_draft(bid_id, user)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@router.get("/bids/{bid_id}/transitions", response_model=TransitionsResponse)
async def get_bid_transitions(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current status and the transitions open to the caller."""
    bid, transitions = await BidService(db).get_available_transitions(bid_id, user)
    return transitions_response(bid.id, bid.status, BID_MACHINE, transitions)


@router.post("/bids/{bid_id}/transition", response_model=ActionResponse)
async def transition_bid(
    bid_id: uuid.UUID,
    body: TransitionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = parse_status(BidStatus, body.target_status)
    bid = await BidService(db).transition(bid_id, target, user, body.metadata)
    return _bid_action(f"Bid moved to {BID_MACHINE.label(bid.status)}", bid, user)


@router.post("/bids/{bid_id}/submit", response_model=ActionResponse)
async def submit_bid(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a draft bid to the buyer."""
    bid = await BidService(db).submit(bid_id, user)
    return _bid_action("Bid submitted", bid, user)


@router.post("/bids/{bid_id}/evaluate", response_model=BidResponse)
async def evaluate_bid(
    bid_id: uuid.UUID,
    body: BidEvaluationRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Score a submitted bid (1-10 per criterion)."""
    svc = BidService(db)
    bid = await svc.evaluate(
        bid_id,
        user,
        technical_score=body.technical_score,
        commercial_score=body.commercial_score,
        delivery_score=body.delivery_score,
        total_score=body.total_score,
        evaluation_notes=body.evaluation_notes,
    )
    bid = await svc.get_bid(bid.id)
    return BidResponse.model_validate(bid)


@router.post("/bids/{bid_id}/review", response_model=ActionResponse)
async def start_bid_review(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BidService(db).start_review(bid_id, user)
    return _bid_action("Bid is under review", bid, user)


@router.post("/bids/{bid_id}/award", response_model=ActionResponse)
async def award_bid(
    bid_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Award the bid; the RFQ moves to awarded with it."""
    bid = await BidService(db).award(bid_id, user)
    return _bid_action("Bid awarded", bid, user)


@router.post("/bids/{bid_id}/reject", response_model=ActionResponse)
async def reject_bid(
    bid_id: uuid.UUID,
    body: BidReasonRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BidService(db).reject(bid_id, user, body.reason)
    return _bid_action("Bid rejected", bid, user)


@router.post("/bids/{bid_id}/withdraw", response_model=ActionResponse)
async def withdraw_bid(
    bid_id: uuid.UUID,
    body: BidReasonRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bid = await BidService(db).withdraw(bid_id, user, body.reason)
    return _bid_action("Bid withdrawn", bid, user)
