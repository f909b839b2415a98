from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import InvitationStatus

if TYPE_CHECKING:
    from src.models.company import Company
    from src.models.rfq import Rfq


class RfqInvitation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A supplier company attached to an RFQ's invitation list."""

    __tablename__ = "rfq_invitations"

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
    status: Mapped[InvitationStatus] = mapped_column(
        nullable=False, server_default="INVITED"
    )
    invited_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="invitations", lazy="noload")
    supplier_company: Mapped[Company] = relationship("Company", lazy="noload")

    __table_args__ = (
        UniqueConstraint(
            "rfq_id", "supplier_company_id",
            name="uq_rfq_invitations_rfq_supplier",
        ),
        Index("ix_rfq_invitations_supplier_company_id", "supplier_company_id"),
    )
