"""DocumentSequence model: per-prefix, per-year counters for reference numbers."""

from sqlalchemy import Integer, PrimaryKeyConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class DocumentSequence(Base):
    __tablename__ = "document_sequences"

    prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    __table_args__ = (
        PrimaryKeyConstraint("prefix", "year", name="pk_document_sequences"),
    )

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.prefix}-{self.year} last={self.last_value}>"
