"""Pydantic v2 schemas for the bid endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import BidStatus

# ---------------------------------------------------------------------------
# Bid items
# ---------------------------------------------------------------------------


class BidItemCreate(BaseModel):
    rfq_item_id: uuid.UUID | None = None
    item_name: str = Field(..., min_length=1, max_length=255)
    item_description: str | None = None
    quantity: Decimal = Field(..., gt=0)
    unit_of_measure: str = Field(..., min_length=1, max_length=20)
    unit_price: Decimal = Field(..., ge=0)
    total_price: Decimal | None = Field(None, ge=0)
    specifications: dict | None = None
    notes: str | None = None


class BidItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    bid_id: uuid.UUID
    rfq_item_id: uuid.UUID | None = None
    item_name: str
    item_description: str | None = None
    quantity: Decimal
    unit_of_measure: str
    unit_price: Decimal
    total_price: Decimal
    specifications: dict | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Bids
# ---------------------------------------------------------------------------


class BidDraftRequest(BaseModel):
    currency: str | None = Field(None, min_length=3, max_length=3)
    proposed_delivery_date: datetime | None = None
    technical_proposal: str | None = None
    commercial_terms: str | None = None
    notes: str | None = None
    items: list[BidItemCreate] = Field(..., min_length=1)


class BidDraftUpdate(BaseModel):
    currency: str | None = Field(None, min_length=3, max_length=3)
    proposed_delivery_date: datetime | None = None
    technical_proposal: str | None = None
    commercial_terms: str | None = None
    notes: str | None = None
    items: list[BidItemCreate] | None = Field(None, min_length=1)


class BidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    bid_number: str
    rfq_id: uuid.UUID
    supplier_company_id: uuid.UUID
    submitted_by: uuid.UUID
    status: BidStatus
    total_amount: Decimal
    currency: str
    proposed_delivery_date: datetime | None = None
    technical_proposal: str | None = None
    commercial_terms: str | None = None
    notes: str | None = None
    technical_score: Decimal | None = None
    commercial_score: Decimal | None = None
    delivery_score: Decimal | None = None
    total_score: Decimal | None = None
    evaluation_notes: str | None = None
    evaluated_by: uuid.UUID | None = None
    evaluated_at: datetime | None = None
    submitted_at: datetime | None = None
    awarded_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    withdrawn_at: datetime | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    items: list[BidItemResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class BidEvaluationRequest(BaseModel):
    technical_score: Decimal = Field(..., ge=1, le=10)
    commercial_score: Decimal = Field(..., ge=1, le=10)
    delivery_score: Decimal = Field(..., ge=1, le=10)
    total_score: Decimal | None = Field(None, ge=1, le=10)
    evaluation_notes: str | None = None


class BidReasonRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)
