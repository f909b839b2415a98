from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import BidStatus

if TYPE_CHECKING:
    from src.models.bid_item import BidItem
    from src.models.company import Company
    from src.models.negotiation import Negotiation
    from src.models.rfq import Rfq


class Bid(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bids"

    bid_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    submitted_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[BidStatus] = mapped_column(nullable=False, server_default="DRAFT")
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, server_default="0"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default="USD")
    proposed_delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    technical_proposal: Mapped[str | None] = mapped_column(Text)
    commercial_terms: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    # Evaluation (1-10 scale)
    technical_score: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    commercial_score: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    delivery_score: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    total_score: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    evaluation_notes: Mapped[str | None] = mapped_column(Text)
    evaluated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    evaluated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    awarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    withdrawn_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="bids", lazy="noload")
    supplier_company: Mapped[Company] = relationship("Company", lazy="noload")
    items: Mapped[list[BidItem]] = relationship(
        "BidItem", back_populates="bid", lazy="noload", cascade="all, delete-orphan"
    )
    negotiation: Mapped[Negotiation | None] = relationship(
        "Negotiation", back_populates="bid", lazy="noload", uselist=False
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_bids_total_amount_non_negative"),
        # One bid row per supplier per RFQ; drafts are updated in place
        Index(
            "uq_bids_rfq_supplier",
            "rfq_id",
            "supplier_company_id",
            unique=True,
        ),
        Index("ix_bids_status", "status"),
    )
