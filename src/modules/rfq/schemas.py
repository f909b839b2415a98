"""Pydantic v2 schemas for the RFQ endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import InvitationStatus, RfqStatus

# ---------------------------------------------------------------------------
# RFQ items
# ---------------------------------------------------------------------------


class RfqItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    item_description: str | None = None
    quantity: Decimal = Field(..., gt=0)
    unit_of_measure: str = Field(..., min_length=1, max_length=20)
    specifications: dict | None = None
    estimated_price: Decimal | None = Field(None, ge=0)
    sort_order: int = Field(0, ge=0)


class RfqItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    item_name: str
    item_description: str | None = None
    quantity: Decimal
    unit_of_measure: str
    specifications: dict | None = None
    estimated_price: Decimal | None = None
    sort_order: int


# ---------------------------------------------------------------------------
# RFQs
# ---------------------------------------------------------------------------


class RfqCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    currency: str = Field("USD", min_length=3, max_length=3)
    budget_min: Decimal | None = Field(None, ge=0)
    budget_max: Decimal | None = Field(None, ge=0)
    delivery_date: datetime | None = None
    bid_deadline: datetime | None = None
    delivery_location: str | None = Field(None, max_length=255)
    terms_conditions: str | None = None
    items: list[RfqItemCreate] = Field(default_factory=list)


class RfqUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    budget_min: Decimal | None = Field(None, ge=0)
    budget_max: Decimal | None = Field(None, ge=0)
    delivery_date: datetime | None = None
    bid_deadline: datetime | None = None
    delivery_location: str | None = Field(None, max_length=255)
    terms_conditions: str | None = None


class RfqResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    reference_number: str
    company_id: uuid.UUID
    created_by: uuid.UUID
    title: str
    description: str | None = None
    status: RfqStatus
    currency: str
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None
    delivery_date: datetime | None = None
    bid_deadline: datetime | None = None
    delivery_location: str | None = None
    terms_conditions: str | None = None
    awarded_supplier_id: uuid.UUID | None = None
    awarded_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    items: list[RfqItemResponse] = Field(default_factory=list)


class RfqListResponse(BaseModel):
    items: list[RfqResponse]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


class InvitationCreate(BaseModel):
    supplier_company_ids: list[uuid.UUID] = Field(..., min_length=1)


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    supplier_company_id: uuid.UUID
    status: InvitationStatus
    invited_by: uuid.UUID | None = None
    invited_at: datetime
    responded_at: datetime | None = None


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class RfqStatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    from_status: RfqStatus | None = None
    to_status: RfqStatus
    changed_by: uuid.UUID | None = None
    is_override: bool
    reason: str | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime


# ---------------------------------------------------------------------------
# Action requests
# ---------------------------------------------------------------------------


class PublishRequest(BaseModel):
    bid_deadline: datetime | None = None


class AwardRequest(BaseModel):
    awarded_supplier_id: uuid.UUID
    bid_id: uuid.UUID | None = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
