from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import PurchaseOrderStatus

if TYPE_CHECKING:
    from src.models.bid import Bid
    from src.models.negotiation import Negotiation
    from src.models.purchase_order_item import PurchaseOrderItem
    from src.models.purchase_order_modification import PurchaseOrderModification
    from src.models.purchase_order_status_history import PurchaseOrderStatusHistory
    from src.models.rfq import Rfq


class PurchaseOrder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "purchase_orders"

    po_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="RESTRICT"),
        nullable=False,
    )
    bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bids.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    negotiation_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("negotiations.id", ondelete="SET NULL"),
    )
    supplier_company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    buyer_company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        nullable=False, server_default="DRAFT"
    )

    # Financials (immutable after creation)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default="USD")
    negotiated_terms: Mapped[dict | None] = mapped_column(JSONB)

    # Dates
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date)
    actual_delivery_date: Mapped[date | None] = mapped_column(Date)

    # Modifiable terms
    delivery_address: Mapped[str | None] = mapped_column(Text)
    payment_terms: Mapped[str | None] = mapped_column(Text)
    terms_conditions: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    internal_notes: Mapped[str | None] = mapped_column(Text)

    # Approval
    requires_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    approved_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    approval_level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    current_approval_step: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0"
    )
    approval_notes: Mapped[str | None] = mapped_column(Text)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Fulfilment
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivery_notes: Mapped[str | None] = mapped_column(Text)
    delivery_attachments: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default="[]"
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    rfq: Mapped[Rfq] = relationship("Rfq", lazy="noload")
    bid: Mapped[Bid] = relationship("Bid", lazy="noload")
    negotiation: Mapped[Negotiation | None] = relationship(
        "Negotiation", foreign_keys=[negotiation_id], lazy="noload"
    )
    items: Mapped[list[PurchaseOrderItem]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        lazy="noload",
        cascade="all, delete-orphan",
    )
    status_history: Mapped[list[PurchaseOrderStatusHistory]] = relationship(
        "PurchaseOrderStatusHistory",
        back_populates="purchase_order",
        lazy="noload",
        cascade="all, delete-orphan",
    )
    modifications: Mapped[list[PurchaseOrderModification]] = relationship(
        "PurchaseOrderModification",
        back_populates="purchase_order",
        lazy="noload",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_purchase_orders_total_non_negative"),
        Index("ix_purchase_orders_status", "status"),
        Index("ix_purchase_orders_supplier_company_id", "supplier_company_id"),
        Index("ix_purchase_orders_buyer_company_id", "buyer_company_id"),
    )
