"""Tests for document number allocation."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from src.modules.workflow.sequences import (
    PO_PREFIX,
    RFQ_PREFIX,
    DocumentSequenceService,
    format_document_number,
)


def test_format_pads_to_four_digits():
    assert format_document_number(PO_PREFIX, 2026, 1) == "PO-2026-0001"
    assert format_document_number(RFQ_PREFIX, 2026, 42) == "RFQ-2026-0042"


def test_format_does_not_truncate_large_values():
    assert format_document_number("BID", 2026, 12345) == "BID-2026-12345"


class TestDocumentSequenceService:
    @pytest.mark.asyncio
    async def test_next_value_returns_counter(self, mock_db):
        result = MagicMock()
        result.scalar_one.return_value = 7
        mock_db.execute.return_value = result

        value = await DocumentSequenceService(mock_db).next_value("PO", 2026)

        assert value == 7
        mock_db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_next_number_uses_current_year(self, mock_db):
        result = MagicMock()
        result.scalar_one.return_value = 3
        mock_db.execute.return_value = result

        number = await DocumentSequenceService(mock_db).next_number(RFQ_PREFIX)

        assert number == f"RFQ-{datetime.now(UTC).year}-0003"

    @pytest.mark.asyncio
    async def test_upsert_targets_prefix_and_year(self, mock_db):
        result = MagicMock()
        result.scalar_one.return_value = 1
        mock_db.execute.return_value = result

        await DocumentSequenceService(mock_db).next_value("PO", 2026)

        statement = mock_db.execute.call_args[0][0]
        compiled = str(statement)
        assert "ON CONFLICT" in compiled.upper()
        assert "RETURNING" in compiled.upper()
