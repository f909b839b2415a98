from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import RfqStatus

if TYPE_CHECKING:
    from src.models.bid import Bid
    from src.models.company import Company
    from src.models.rfq_invitation import RfqInvitation
    from src.models.rfq_item import RfqItem
    from src.models.rfq_status_history import RfqStatusHistory
    from src.models.user import User


class Rfq(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "rfqs"

    reference_number: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RfqStatus] = mapped_column(
        nullable=False, server_default="DRAFT"
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default="USD"
    )
    budget_min: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    budget_max: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    delivery_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    bid_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivery_location: Mapped[str | None] = mapped_column(String(255))
    terms_conditions: Mapped[str | None] = mapped_column(Text)
    awarded_supplier_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL"),
    )
    awarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )

    # Relationships (lazy="noload"; callers load what they need explicitly)
    company: Mapped[Company] = relationship(
        "Company", foreign_keys=[company_id], lazy="noload"
    )
    awarded_supplier: Mapped[Company | None] = relationship(
        "Company", foreign_keys=[awarded_supplier_id], lazy="noload"
    )
    creator: Mapped[User] = relationship("User", lazy="noload")
    items: Mapped[list[RfqItem]] = relationship(
        "RfqItem", back_populates="rfq", lazy="noload", cascade="all, delete-orphan"
    )
    invitations: Mapped[list[RfqInvitation]] = relationship(
        "RfqInvitation", back_populates="rfq", lazy="noload", cascade="all, delete-orphan"
    )
    bids: Mapped[list[Bid]] = relationship("Bid", back_populates="rfq", lazy="noload")
    status_history: Mapped[list[RfqStatusHistory]] = relationship(
        "RfqStatusHistory", back_populates="rfq", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "bid_deadline IS NULL OR delivery_date IS NULL OR bid_deadline < delivery_date",
            name="ck_rfqs_deadline_before_delivery",
        ),
        Index("ix_rfqs_company_id", "company_id"),
        Index("ix_rfqs_status", "status"),
        Index("ix_rfqs_created_by", "created_by"),
        Index(
            "ix_rfqs_bid_deadline",
            "bid_deadline",
            postgresql_where="status = 'BIDDING_OPEN'",
        ),
    )
