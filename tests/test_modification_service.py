"""Tests for the purchase order modification ledger."""

import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.exceptions import ForbiddenException, PreconditionFailedException, ValidationException
from src.models.enums import ModificationStatus, PurchaseOrderStatus
from src.modules.purchase_order.modification_service import (
    ModificationService,
    serialize_value,
)

SERVICE = "src.modules.purchase_order.modification_service"


def _make_po(buyer_company_id, supplier_company_id, status):
    po = MagicMock()
    po.id = uuid.uuid4()
    po.po_number = "PO-2026-0001"
    po.buyer_company_id = buyer_company_id
    po.supplier_company_id = supplier_company_id
    po.created_by = uuid.uuid4()
    po.status = status
    po.delivery_address = "Dock 4"
    po.expected_delivery_date = date(2026, 12, 1)
    return po


def _make_modification(po, field_name="delivery_address", old="Dock 4", new="Dock 9"):
    modification = MagicMock()
    modification.id = uuid.uuid4()
    modification.purchase_order_id = po.id
    modification.field_name = field_name
    modification.old_value = old
    modification.new_value = new
    modification.modified_by = uuid.uuid4()
    modification.status = ModificationStatus.PENDING
    return modification


def _locked_result(value):
    result = MagicMock()
    result.scalar_one.return_value = value
    return result


def test_serialize_value():
    assert serialize_value(None) is None
    assert serialize_value(date(2026, 1, 2)) == "2026-01-02"
    assert serialize_value(12) == "12"


class TestRecordModification:
    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, mock_db, buyer):
        with pytest.raises(ValidationException, match="cannot be modified"):
            await ModificationService(mock_db).record_modification(
                uuid.uuid4(), "total_amount", "1", buyer
            )

    @pytest.mark.asyncio
    async def test_draft_order_applied_directly(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.DRAFT)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            modification = await service.record_modification(
                po.id, "delivery_address", "Dock 9", buyer
            )

        assert po.delivery_address == "Dock 9"
        assert modification.status == ModificationStatus.APPROVED
        assert modification.old_value == "Dock 4"
        assert modification.approved_by == buyer.id

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_issued_order_records_pending(
        self, mock_outbox_cls, mock_db, supplier, buyer_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer_company_id, supplier.company_id, PurchaseOrderStatus.ACKNOWLEDGED)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            modification = await service.record_modification(
                po.id, "expected_delivery_date", date(2026, 12, 15), supplier, reason="Port strike"
            )

        assert modification.status == ModificationStatus.PENDING
        assert modification.old_value == "2026-12-01"
        assert modification.new_value == "2026-12-15"
        assert po.expected_delivery_date == date(2026, 12, 1)
        call = mock_outbox_cls.return_value.publish_event.call_args
        assert call.kwargs["event_type"] == "purchase_order.modification_requested"
        assert call.kwargs["payload"]["requested_by"] == str(supplier.id)

    @pytest.mark.asyncio
    async def test_bad_date_rejected(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        service = ModificationService(mock_db)
        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ValidationException, match="ISO date"):
                await service.record_modification(
                    po.id, "expected_delivery_date", "next tuesday", buyer
                )

    @pytest.mark.asyncio
    async def test_completed_order_cannot_be_modified(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.COMPLETED)
        service = ModificationService(mock_db)
        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(PreconditionFailedException, match="cannot be modified"):
                await service.record_modification(po.id, "notes", "late", buyer)


class TestResolveModification:
    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_approve_applies_value(
        self, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        modification = _make_modification(po)
        mock_db.get.return_value = modification
        mock_db.execute.return_value = _locked_result(modification)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.approve_modification(modification.id, buyer, notes="fine")

        assert po.delivery_address == "Dock 9"
        assert modification.status == ModificationStatus.APPROVED
        assert modification.approved_by == buyer.id
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["resolution"] == "approved"

    @pytest.mark.asyncio
    async def test_stale_old_value_rejected(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        po.delivery_address = "Dock 7"
        modification = _make_modification(po)
        mock_db.get.return_value = modification
        mock_db.execute.return_value = _locked_result(modification)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(PreconditionFailedException, match="changed since"):
                await service.approve_modification(modification.id, buyer)
        assert po.delivery_address == "Dock 7"

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_reject_leaves_order_untouched(
        self, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        modification = _make_modification(po)
        mock_db.get.return_value = modification
        mock_db.execute.return_value = _locked_result(modification)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.reject_modification(modification.id, buyer, notes="no")

        assert po.delivery_address == "Dock 4"
        assert modification.status == ModificationStatus.REJECTED

    @pytest.mark.asyncio
    async def test_already_resolved(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        modification = _make_modification(po)
        modification.status = ModificationStatus.APPROVED
        mock_db.get.return_value = modification
        mock_db.execute.return_value = _locked_result(modification)
        service = ModificationService(mock_db)

        with patch.object(service.orders, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(PreconditionFailedException, match="already approved"):
                await service.reject_modification(modification.id, buyer)

    @pytest.mark.asyncio
    async def test_supplier_cannot_resolve(self, mock_db, supplier):
        with pytest.raises(ForbiddenException):
            await ModificationService(mock_db).approve_modification(uuid.uuid4(), supplier)


class TestListModifications:
    @pytest.mark.asyncio
    async def test_party_lists_ledger(self, mock_db, supplier, buyer_company_id):
        po = _make_po(buyer_company_id, supplier.company_id, PurchaseOrderStatus.IN_PROGRESS)
        modification = _make_modification(po)
        order = MagicMock()
        order.scalar_one_or_none.return_value = po
        rows = MagicMock()
        rows.scalars.return_value.all.return_value = [modification]
        mock_db.execute.side_effect = [order, rows]

        result = await ModificationService(mock_db).list_modifications(po.id, supplier)

        assert result == [modification]

    @pytest.mark.asyncio
    async def test_third_party_forbidden(self, mock_db, buyer, supplier_company_id):
        po = _make_po(uuid.uuid4(), supplier_company_id, PurchaseOrderStatus.IN_PROGRESS)
        order = MagicMock()
        order.scalar_one_or_none.return_value = po
        mock_db.execute.return_value = order

        with pytest.raises(ForbiddenException):
            await ModificationService(mock_db).list_modifications(po.id, buyer)
        assert mock_db.execute.await_count == 1
