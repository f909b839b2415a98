from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import NegotiationStatus

if TYPE_CHECKING:
    from src.models.bid import Bid
    from src.models.negotiation_message import NegotiationMessage
    from src.models.rfq import Rfq


class Negotiation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "negotiations"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bids.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    initiated_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[NegotiationStatus] = mapped_column(
        nullable=False, server_default="ACTIVE"
    )
    initial_message: Mapped[str | None] = mapped_column(Text)
    counter_offer_data: Mapped[dict | None] = mapped_column(JSONB)
    # The single counter_offer awaiting resolution, maintained on every send
    pending_offer_message_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("negotiation_messages.id", ondelete="SET NULL", use_alter=True),
    )
    accepted_offer_message_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("negotiation_messages.id", ondelete="SET NULL", use_alter=True),
    )
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    purchase_order_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_orders.id", ondelete="SET NULL", use_alter=True),
    )

    rfq: Mapped[Rfq] = relationship("Rfq", lazy="noload")
    bid: Mapped[Bid] = relationship("Bid", back_populates="negotiation", lazy="noload")
    messages: Mapped[list[NegotiationMessage]] = relationship(
        "NegotiationMessage",
        back_populates="negotiation",
        foreign_keys="NegotiationMessage.negotiation_id",
        lazy="noload",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_negotiations_status", "status"),
        Index("ix_negotiations_initiated_by", "initiated_by"),
        Index("ix_negotiations_supplier_id", "supplier_id"),
    )
