from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.rfq import Rfq


class RfqItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "rfq_items"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    specifications: Mapped[dict | None] = mapped_column(JSONB)
    estimated_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="items", lazy="noload")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_rfq_items_quantity_positive"),
        Index("ix_rfq_items_rfq_id", "rfq_id"),
    )
