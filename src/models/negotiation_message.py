from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import MessageType, OfferStatus

if TYPE_CHECKING:
    from src.models.negotiation import Negotiation


class NegotiationMessage(UUIDPrimaryKeyMixin, Base):
    """A single message in a negotiation thread.

    ``offer_status`` is null while a counter_offer awaits resolution.
    """

    __tablename__ = "negotiation_messages"

    negotiation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("negotiations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(
        nullable=False, server_default="TEXT"
    )
    offer_data: Mapped[dict | None] = mapped_column(JSONB)
    offer_status: Mapped[OfferStatus | None] = mapped_column()
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # clock_timestamp keeps ordering stable for messages sent in one transaction
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.clock_timestamp(),
        nullable=False,
    )

    negotiation: Mapped[Negotiation] = relationship(
        "Negotiation",
        back_populates="messages",
        foreign_keys=[negotiation_id],
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_negotiation_messages_negotiation_id", "negotiation_id", "created_at"),
        Index(
            "ix_negotiation_messages_unread",
            "negotiation_id",
            postgresql_where="is_read = false",
        ),
    )
