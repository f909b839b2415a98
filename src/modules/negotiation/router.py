"""Negotiation API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.modules.negotiation.negotiation_service import NegotiationService
from src.modules.negotiation.schemas import (
    CancelNegotiationRequest,
    CounterOfferRequest,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    NegotiationResponse,
    NegotiationStart,
    OfferActionRequest,
)
from src.modules.tenancy.auth import AuthenticatedUser, get_current_user
from src.schemas.responses import ActionResponse

router = APIRouter(prefix="/negotiations", tags=["negotiations"])


def _message_action(message: str, negotiation, sent) -> ActionResponse:
    return ActionResponse(
        message=message,
        data={
            "negotiation_id": str(negotiation.id),
            "message": MessageResponse.model_validate(sent).model_dump(mode="json"),
        },
        new_status=negotiation.status.value,
    )


@router.post("/", response_model=NegotiationResponse, status_code=201)
async def start_negotiation(
    body: NegotiationStart,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a negotiation on a submitted, under-review or awarded bid."""
    negotiation = await NegotiationService(db).start(
        body.bid_id, user, body.initial_message, body.counter_offer_data
    )
    return NegotiationResponse.model_validate(negotiation)


@router.get("/", response_model=list[NegotiationResponse])
async def list_negotiations(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    negotiations = await NegotiationService(db).list_for_user(user)
    return [NegotiationResponse.model_validate(n) for n in negotiations]


@router.get("/{negotiation_id}", response_model=NegotiationResponse)
async def get_negotiation(
    negotiation_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    negotiation = await NegotiationService(db).get_negotiation(negotiation_id, user)
    return NegotiationResponse.model_validate(negotiation)


@router.get("/{negotiation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    negotiation_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Full message thread, oldest first."""
    messages = await NegotiationService(db).list_messages(negotiation_id, user)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/{negotiation_id}/messages", response_model=ActionResponse, status_code=201)
async def send_message(
    negotiation_id: uuid.UUID,
    body: MessageCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = NegotiationService(db)
    sent = await svc.send_message(
        negotiation_id,
        user,
        body.message,
        message_type=body.message_type,
        offer_data=body.offer_data,
        offer_status=body.offer_status,
    )
    negotiation = await svc.get_negotiation(negotiation_id)
    return _message_action("Message sent", negotiation, sent)


@router.post("/{negotiation_id}/counter-offer", response_model=ActionResponse, status_code=201)
async def counter_offer(
    negotiation_id: uuid.UUID,
    body: CounterOfferRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = NegotiationService(db)
    sent = await svc.counter_offer(negotiation_id, user, body.message, body.offer_data)
    negotiation = await svc.get_negotiation(negotiation_id)
    return _message_action("Counter offer sent", negotiation, sent)


@router.post("/{negotiation_id}/accept", response_model=ActionResponse)
async def accept_offer(
    negotiation_id: uuid.UUID,
    body: OfferActionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept the pending offer and close the negotiation."""
    svc = NegotiationService(db)
    sent = await svc.accept_offer(negotiation_id, user, body.message)
    negotiation = await svc.get_negotiation(negotiation_id)
    return _message_action("Offer accepted", negotiation, sent)


@router.post("/{negotiation_id}/reject", response_model=ActionResponse)
async def reject_offer(
    negotiation_id: uuid.UUID,
    body: OfferActionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = NegotiationService(db)
    sent = await svc.reject_offer(negotiation_id, user, body.message)
    negotiation = await svc.get_negotiation(negotiation_id)
    return _message_action("Offer rejected", negotiation, sent)


@router.post("/{negotiation_id}/withdraw", response_model=ActionResponse)
async def withdraw_offer(
    negotiation_id: uuid.UUID,
    body: OfferActionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = NegotiationService(db)
    sent = await svc.withdraw_offer(negotiation_id, user, body.message)
    negotiation = await svc.get_negotiation(negotiation_id)
    return _message_action("Offer withdrawn", negotiation, sent)


@router.post("/{negotiation_id}/read", response_model=MarkReadResponse)
async def mark_messages_read(
    negotiation_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NegotiationService(db).mark_messages_read(negotiation_id, user)
    return MarkReadResponse(marked_read=count)


@router.post("/{negotiation_id}/close", response_model=ActionResponse)
async def close_negotiation(
    negotiation_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    negotiation = await NegotiationService(db).close(negotiation_id, user)
    return ActionResponse(
        message="Negotiation closed",
        data={"negotiation_id": str(negotiation.id)},
        new_status=negotiation.status.value,
    )


@router.post("/{negotiation_id}/cancel", response_model=ActionResponse)
async def cancel_negotiation(
    negotiation_id: uuid.UUID,
    body: CancelNegotiationRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    negotiation = await NegotiationService(db).cancel(negotiation_id, user, body.reason)
    return ActionResponse(
        message="Negotiation cancelled",
        data={"negotiation_id": str(negotiation.id)},
        new_status=negotiation.status.value,
    )
