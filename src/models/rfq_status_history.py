from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import RfqStatus

if TYPE_CHECKING:
    from src.models.rfq import Rfq
    from src.models.user import User


class RfqStatusHistory(UUIDPrimaryKeyMixin, Base):
    """Immutable audit log for RFQ status changes. No updated_at column."""

    __tablename__ = "rfq_status_history"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status: Mapped[RfqStatus | None] = mapped_column()
    to_status: Mapped[RfqStatus] = mapped_column(nullable=False)
    changed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    is_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    reason: Mapped[str | None] = mapped_column(Text)
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="status_history", lazy="noload")
    changed_by_user: Mapped[User | None] = relationship("User", lazy="noload")

    __table_args__ = (
        Index("ix_rfq_status_history_rfq_id", "rfq_id", "created_at"),
    )
