from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import UserRole

if TYPE_CHECKING:
    from src.models.company import Company


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="SET NULL")
    )
    role: Mapped[UserRole] = mapped_column(nullable=False, server_default="BUYER")
    is_active: Mapped[bool] = mapped_column(Boolean, server_default="true", nullable=False)

    company: Mapped[Company | None] = relationship(
        "Company", back_populates="users", lazy="noload"
    )

    __table_args__ = (
        Index("ix_users_company_id", "company_id"),
    )
