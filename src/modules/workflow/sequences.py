"""Atomic per-year document numbers (RFQ-2026-0001, BID-..., PO-...)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.document_sequence import DocumentSequence

logger = logging.getLogger(__name__)

RFQ_PREFIX = "RFQ"
BID_PREFIX = "BID"
PO_PREFIX = "PO"


def format_document_number(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:04d}"


class DocumentSequenceService:
    """Hands out gap-tolerant, never-duplicated numbers per (prefix, year).

    The increment is a single ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``
    so the counter row is locked for the rest of the caller's transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_value(self, prefix: str, year: int) -> int:
        statement = (
            pg_insert(DocumentSequence)
            .values(prefix=prefix, year=year, last_value=1)
            .on_conflict_do_update(
                index_elements=[DocumentSequence.prefix, DocumentSequence.year],
                set_={"last_value": DocumentSequence.last_value + 1},
            )
            .returning(DocumentSequence.last_value)
        )
        result = await self.db.execute(statement)
        return result.scalar_one()

    async def next_number(self, prefix: str) -> str:
        year = datetime.now(UTC).year
        value = await self.next_value(prefix, year)
        number = format_document_number(prefix, year, value)
        logger.debug("Allocated document number %s", number)
        return number
