"""Pydantic v2 schemas for the purchase order endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import ModificationStatus, PurchaseOrderStatus

# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class PurchaseOrderOverrides(BaseModel):
    """Optional values that replace the RFQ and configured defaults on a new PO."""

    delivery_address: str | None = Field(None, max_length=2000)
    payment_terms: str | None = Field(None, max_length=500)
    notes: str | None = None

    def overrides(self) -> dict:
        return self.model_dump(
            include={"delivery_address", "payment_terms", "notes"}, exclude_none=True
        )


class CreateFromBidRequest(PurchaseOrderOverrides):
    bid_id: uuid.UUID


class CreateFromNegotiationRequest(PurchaseOrderOverrides):
    negotiation_id: uuid.UUID


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------


class PurchaseOrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    purchase_order_id: uuid.UUID
    rfq_item_id: uuid.UUID | None = None
    item_name: str
    item_description: str | None = None
    quantity: Decimal
    unit_of_measure: str
    unit_price: Decimal
    total_price: Decimal
    specifications: dict | None = None
    notes: str | None = None


class PurchaseOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    po_number: str
    rfq_id: uuid.UUID
    bid_id: uuid.UUID
    negotiation_id: uuid.UUID | None = None
    supplier_company_id: uuid.UUID
    buyer_company_id: uuid.UUID
    created_by: uuid.UUID
    status: PurchaseOrderStatus
    total_amount: Decimal
    currency: str
    negotiated_terms: dict | None = None
    order_date: date
    expected_delivery_date: date | None = None
    actual_delivery_date: date | None = None
    delivery_address: str | None = None
    payment_terms: str | None = None
    terms_conditions: str | None = None
    notes: str | None = None
    internal_notes: str | None = None
    requires_approval: bool
    approved_amount: Decimal | None = None
    approval_level: int
    current_approval_step: int
    approval_notes: str | None = None
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    rejected_by: uuid.UUID | None = None
    rejected_at: datetime | None = None
    sent_at: datetime | None = None
    acknowledged_at: datetime | None = None
    started_at: datetime | None = None
    delivered_at: datetime | None = None
    delivery_notes: str | None = None
    delivery_attachments: list[dict] = Field(default_factory=list)
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    items: list[PurchaseOrderItemResponse] = Field(default_factory=list)


class PurchaseOrderStatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    purchase_order_id: uuid.UUID
    from_status: PurchaseOrderStatus | None = None
    to_status: PurchaseOrderStatus
    changed_by: uuid.UUID | None = None
    is_override: bool
    notes: str | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime


# ---------------------------------------------------------------------------
# Action requests
# ---------------------------------------------------------------------------


class ApproveRequest(BaseModel):
    approved_amount: Decimal | None = Field(None, gt=0)
    notes: str | None = None


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class DeliveryAttachment(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., gt=0)
    url: str | None = None
    content_type: str | None = None


class ConfirmDeliveryRequest(BaseModel):
    attachments: list[DeliveryAttachment] = Field(default_factory=list)
    notes: str | None = None
    actual_delivery_date: date | None = None


# ---------------------------------------------------------------------------
# Modifications
# ---------------------------------------------------------------------------


class ModificationCreate(BaseModel):
    field_name: str = Field(..., min_length=1, max_length=64)
    new_value: str | None = None
    reason: str | None = None


class ModificationDecision(BaseModel):
    notes: str | None = None


class ModificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    purchase_order_id: uuid.UUID
    field_name: str
    old_value: str | None = None
    new_value: str | None = None
    reason: str | None = None
    modified_by: uuid.UUID
    status: ModificationStatus
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = None
    approval_notes: str | None = None
    created_at: datetime
