from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.bid import Bid
    from src.models.rfq_item import RfqItem


class BidItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bid_items"

    bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bids.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_item_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_items.id", ondelete="SET NULL"),
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 4), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    specifications: Mapped[dict | None] = mapped_column(JSONB)
    notes: Mapped[str | None] = mapped_column(Text)

    bid: Mapped[Bid] = relationship("Bid", back_populates="items", lazy="noload")
    rfq_item: Mapped[RfqItem | None] = relationship("RfqItem", lazy="noload")

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_bid_items_unit_price_non_negative"),
        CheckConstraint("quantity > 0", name="ck_bid_items_quantity_positive"),
        Index("ix_bid_items_bid_id", "bid_id"),
    )
