from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import CompanyType

if TYPE_CHECKING:
    from src.models.user import User


class Company(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[CompanyType] = mapped_column(nullable=False, server_default="BUYER")
    email: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, server_default="true", nullable=False)

    users: Mapped[list[User]] = relationship("User", back_populates="company", lazy="noload")

    __table_args__ = (
        Index("ix_companies_type", "type"),
    )
