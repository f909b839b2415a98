"""Pydantic v2 schemas for the negotiation endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import MessageType, NegotiationStatus, OfferStatus
from src.modules.negotiation.constants import MAX_MESSAGE_LENGTH, MIN_MESSAGE_LENGTH


class NegotiationStart(BaseModel):
    bid_id: uuid.UUID
    initial_message: str = Field(..., min_length=MIN_MESSAGE_LENGTH, max_length=MAX_MESSAGE_LENGTH)
    counter_offer_data: dict | None = None


class NegotiationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    bid_id: uuid.UUID
    initiated_by: uuid.UUID
    supplier_id: uuid.UUID
    status: NegotiationStatus
    initial_message: str | None = None
    counter_offer_data: dict | None = None
    pending_offer_message_id: uuid.UUID | None = None
    accepted_offer_message_id: uuid.UUID | None = None
    last_activity_at: datetime | None = None
    closed_at: datetime | None = None
    purchase_order_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=MIN_MESSAGE_LENGTH, max_length=MAX_MESSAGE_LENGTH)
    message_type: MessageType = MessageType.TEXT
    offer_data: dict | None = None
    offer_status: OfferStatus | None = None


class OfferActionRequest(BaseModel):
    message: str | None = Field(None, max_length=MAX_MESSAGE_LENGTH)


class CounterOfferRequest(BaseModel):
    message: str = Field(..., min_length=MIN_MESSAGE_LENGTH, max_length=MAX_MESSAGE_LENGTH)
    offer_data: dict


class CancelNegotiationRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    negotiation_id: uuid.UUID
    sender_id: uuid.UUID
    message: str
    message_type: MessageType
    offer_data: dict | None = None
    offer_status: OfferStatus | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


class MarkReadResponse(BaseModel):
    marked_read: int
