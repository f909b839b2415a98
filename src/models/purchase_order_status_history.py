from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import PurchaseOrderStatus

if TYPE_CHECKING:
    from src.models.purchase_order import PurchaseOrder


class PurchaseOrderStatusHistory(UUIDPrimaryKeyMixin, Base):
    """Immutable audit log for purchase order status changes."""

    __tablename__ = "purchase_order_status_history"

    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status: Mapped[PurchaseOrderStatus | None] = mapped_column()
    to_status: Mapped[PurchaseOrderStatus] = mapped_column(nullable=False)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    is_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    notes: Mapped[str | None] = mapped_column(Text)
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    purchase_order: Mapped[PurchaseOrder] = relationship(
        "PurchaseOrder", back_populates="status_history", lazy="noload"
    )

    __table_args__ = (
        Index(
            "ix_purchase_order_status_history_po_id",
            "purchase_order_id",
            "created_at",
        ),
    )
