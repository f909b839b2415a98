"""Tests for PurchaseOrderService derivation and the PO state machine."""

import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.enums import (
    BidStatus,
    NegotiationStatus,
    OfferStatus,
    PurchaseOrderStatus,
)
from src.models.purchase_order_item import PurchaseOrderItem
from src.models.purchase_order_status_history import PurchaseOrderStatusHistory
from src.modules.purchase_order.purchase_order_service import (
    PurchaseOrderService,
    validate_delivery_attachments,
)

SERVICE = "src.modules.purchase_order.purchase_order_service"


def _make_scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def _make_list_result(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(values)
    return result


def _make_rfq(company_id):
    rfq = MagicMock()
    rfq.id = uuid.uuid4()
    rfq.company_id = company_id
    rfq.title = "Pipes"
    rfq.delivery_date = datetime(2026, 12, 1, tzinfo=UTC)
    rfq.delivery_location = "Dock 4"
    rfq.terms_conditions = None
    return rfq


def _make_bid(rfq, supplier_company_id, status=BidStatus.AWARDED):
    bid = MagicMock()
    bid.id = uuid.uuid4()
    bid.bid_number = "BID-2026-0001"
    bid.rfq_id = rfq.id
    bid.supplier_company_id = supplier_company_id
    bid.submitted_by = uuid.uuid4()
    bid.status = status
    bid.total_amount = Decimal("1000.00")
    bid.currency = "USD"
    bid.proposed_delivery_date = None
    return bid


def _make_bid_item():
    item = MagicMock()
    item.rfq_item_id = uuid.uuid4()
    item.item_name = "Pipe"
    item.item_description = None
    item.quantity = Decimal("10")
    item.unit_of_measure = "m"
    item.unit_price = Decimal("100")
    item.total_price = Decimal("1000.00")
    item.specifications = None
    item.notes = None
    return item


def _make_po(buyer_company_id, supplier_company_id, status=PurchaseOrderStatus.DRAFT):
    po = MagicMock()
    po.id = uuid.uuid4()
    po.po_number = "PO-2026-0001"
    po.rfq_id = uuid.uuid4()
    po.bid_id = uuid.uuid4()
    po.buyer_company_id = buyer_company_id
    po.supplier_company_id = supplier_company_id
    po.created_by = uuid.uuid4()
    po.status = status
    po.total_amount = Decimal("1000.00")
    po.currency = "USD"
    po.current_approval_step = 0
    return po


def _added(mock_db, model):
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], model)]


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------


class TestCreateFromBid:
    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    @patch(f"{SERVICE}.settings")
    async def test_creates_sent_order_from_awarded_bid(
        self, mock_settings, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_settings.po_auto_send_to_supplier = True
        mock_settings.po_default_payment_terms = "Net 30 days"
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),  # lock bid
            _make_scalar_result(None),  # negotiation
            _make_scalar_result(None),  # existing PO
            _make_list_result([_make_bid_item()]),  # bid items
        ]
        service = PurchaseOrderService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="PO-2026-0001")
        ):
            po, created = await service.create_from_bid(bid.id, buyer)

        assert created is True
        assert po.po_number == "PO-2026-0001"
        assert po.status == PurchaseOrderStatus.SENT_TO_SUPPLIER
        assert po.sent_at is not None
        assert po.total_amount == Decimal("1000.00")
        assert po.buyer_company_id == buyer.company_id
        assert po.supplier_company_id == supplier_company_id
        assert po.expected_delivery_date == date(2026, 12, 1)
        assert po.delivery_address == "Dock 4"
        assert po.negotiated_terms is None
        assert len(_added(mock_db, PurchaseOrderItem)) == 1
        history = _added(mock_db, PurchaseOrderStatusHistory)
        assert history[0].from_status is None
        call = mock_outbox_cls.return_value.publish_event.call_args
        assert call.kwargs["event_type"] == "purchase_order.created"

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    @patch(f"{SERVICE}.settings")
    async def test_manual_send_waits_for_approval(
        self, mock_settings, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_settings.po_auto_send_to_supplier = False
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(None),
            _make_scalar_result(None),
            _make_list_result([]),
        ]
        service = PurchaseOrderService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="PO-2026-0002")
        ):
            po, _ = await service.create_from_bid(bid.id, buyer)

        assert po.status == PurchaseOrderStatus.PENDING_APPROVAL
        assert po.requires_approval is True
        assert po.sent_at is None

    @pytest.mark.asyncio
    async def test_existing_order_is_returned(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        existing = _make_po(buyer.company_id, supplier_company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(None),
            _make_scalar_result(existing),
        ]

        po, created = await PurchaseOrderService(mock_db).create_from_bid(bid.id, buyer)

        assert po is existing
        assert created is False
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    @patch(f"{SERVICE}.settings")
    async def test_overrides_replace_defaults(
        self, mock_settings, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_settings.po_auto_send_to_supplier = True
        mock_settings.po_default_payment_terms = "Net 30 days"
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(None),
            _make_scalar_result(None),
            _make_list_result([]),
        ]
        service = PurchaseOrderService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="PO-2026-0004")
        ):
            po, _ = await service.create_from_bid(
                bid.id,
                buyer,
                delivery_address="Warehouse 7",
                payment_terms="Net 60 days",
                notes="Call before delivery",
            )

        assert po.delivery_address == "Warehouse 7"
        assert po.payment_terms == "Net 60 days"
        assert po.notes == "Call before delivery"

    @pytest.mark.asyncio
    async def test_existing_order_ignores_overrides(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        existing = _make_po(buyer.company_id, supplier_company_id)
        existing.delivery_address = "Dock 4"
        existing.payment_terms = "Net 30 days"
        existing.notes = None
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(None),
            _make_scalar_result(existing),
        ]

        po, created = await PurchaseOrderService(mock_db).create_from_bid(
            bid.id, buyer, delivery_address="Warehouse 7", payment_terms="Net 60 days", notes="x"
        )

        assert po is existing
        assert created is False
        assert (po.delivery_address, po.payment_terms, po.notes) == ("Dock 4", "Net 30 days", None)
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unawarded_bid_rejected(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(None),
            _make_scalar_result(None),
        ]

        with pytest.raises(PreconditionFailedException, match="only awarded bids"):
            await PurchaseOrderService(mock_db).create_from_bid(bid.id, buyer)

    @pytest.mark.asyncio
    async def test_supplier_cannot_create(self, mock_db, supplier):
        with pytest.raises(ForbiddenException):
            await PurchaseOrderService(mock_db).create_from_bid(uuid.uuid4(), supplier)


class TestCreateFromNegotiation:
    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_uses_accepted_offer_terms(
        self, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.UNDER_REVIEW)
        accepted = MagicMock(offer_status=OfferStatus.ACCEPTED, offer_data={"total_amount": "950"})
        negotiation = MagicMock(
            id=uuid.uuid4(),
            bid_id=bid.id,
            status=NegotiationStatus.CLOSED,
            accepted_offer_message_id=uuid.uuid4(),
            purchase_order_id=None,
        )
        # unlocked negotiation, rfq, accepted message
        mock_db.get.side_effect = [negotiation, rfq, accepted]
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(negotiation),
            _make_scalar_result(None),
            _make_list_result([]),
        ]
        service = PurchaseOrderService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="PO-2026-0003")
        ):
            po, created = await service.create_from_negotiation(negotiation.id, buyer)

        assert created is True
        assert po.negotiated_terms == {"total_amount": "950"}
        assert po.negotiation_id == negotiation.id
        assert po.total_amount == Decimal("1000.00")
        assert negotiation.purchase_order_id == po.id

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_overrides_apply_to_negotiated_order(
        self, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.UNDER_REVIEW)
        accepted = MagicMock(offer_status=OfferStatus.ACCEPTED, offer_data={"total_amount": "950"})
        negotiation = MagicMock(
            id=uuid.uuid4(),
            bid_id=bid.id,
            status=NegotiationStatus.CLOSED,
            accepted_offer_message_id=uuid.uuid4(),
            purchase_order_id=None,
        )
        mock_db.get.side_effect = [negotiation, rfq, accepted]
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(negotiation),
            _make_scalar_result(None),
            _make_list_result([]),
        ]
        service = PurchaseOrderService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="PO-2026-0005")
        ):
            po, _ = await service.create_from_negotiation(
                negotiation.id, buyer, delivery_address="Warehouse 7", notes="Rush"
            )

        assert po.delivery_address == "Warehouse 7"
        assert po.notes == "Rush"

    @pytest.mark.asyncio
    async def test_existing_order_ignores_overrides(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        existing = _make_po(buyer.company_id, supplier_company_id)
        existing.delivery_address = "Dock 4"
        existing.payment_terms = "Net 30 days"
        negotiation = MagicMock(id=uuid.uuid4(), bid_id=bid.id, purchase_order_id=existing.id)
        mock_db.get.side_effect = [negotiation, rfq]
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(negotiation),
            _make_scalar_result(existing),
        ]

        po, created = await PurchaseOrderService(mock_db).create_from_negotiation(
            negotiation.id, buyer, delivery_address="Warehouse 7", payment_terms="Net 60 days"
        )

        assert po is existing
        assert created is False
        assert (po.delivery_address, po.payment_terms) == ("Dock 4", "Net 30 days")
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_negotiation_rejected(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        negotiation = MagicMock(
            id=uuid.uuid4(),
            bid_id=bid.id,
            status=NegotiationStatus.ACTIVE,
            accepted_offer_message_id=None,
        )
        mock_db.get.side_effect = [negotiation, rfq]
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(negotiation),
            _make_scalar_result(None),
        ]

        with pytest.raises(PreconditionFailedException, match="accepted offer"):
            await PurchaseOrderService(mock_db).create_from_negotiation(negotiation.id, buyer)


class TestReadAccess:
    @pytest.mark.asyncio
    async def test_supplier_reads_own_order(self, mock_db, supplier, buyer_company_id):
        po = _make_po(buyer_company_id, supplier.company_id)
        mock_db.execute.return_value = _make_scalar_result(po)

        assert await PurchaseOrderService(mock_db).get_purchase_order(po.id, supplier) is po

    @pytest.mark.asyncio
    async def test_third_party_buyer_forbidden(self, mock_db, buyer, supplier_company_id):
        po = _make_po(uuid.uuid4(), supplier_company_id)
        mock_db.execute.return_value = _make_scalar_result(po)

        with pytest.raises(ForbiddenException):
            await PurchaseOrderService(mock_db).get_purchase_order(po.id, buyer)

    @pytest.mark.asyncio
    async def test_history_hidden_from_other_supplier(self, mock_db, supplier, buyer_company_id):
        po = _make_po(buyer_company_id, uuid.uuid4())
        mock_db.execute.side_effect = [_make_scalar_result(po), _make_list_result([])]

        with pytest.raises(ForbiddenException):
            await PurchaseOrderService(mock_db).get_status_history(po.id, supplier)
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_admin_reads_history(self, mock_db, admin):
        po = _make_po(uuid.uuid4(), uuid.uuid4())
        row = MagicMock()
        mock_db.execute.side_effect = [_make_scalar_result(po), _make_list_result([row])]

        assert await PurchaseOrderService(mock_db).get_status_history(po.id, admin) == [row]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_approve_defaults_amount(self, mock_outbox_cls, mock_db, buyer, supplier_company_id):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.PENDING_APPROVAL)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.approve(po.id, buyer, notes="ok")

        assert po.status == PurchaseOrderStatus.APPROVED
        assert po.approved_amount == Decimal("1000.00")
        assert po.approved_by == buyer.id
        assert po.current_approval_step == 1
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["from_status"] == "pending_approval"
        assert payload["to_status"] == "approved"

    @pytest.mark.asyncio
    async def test_approve_non_positive_amount(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id)
        service = PurchaseOrderService(mock_db)
        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ValidationException, match="positive"):
                await service.approve(po.id, buyer, approved_amount=Decimal("0"))
        assert po.status == PurchaseOrderStatus.DRAFT

    @pytest.mark.asyncio
    async def test_cancel_requires_reason(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.APPROVED)
        service = PurchaseOrderService(mock_db)
        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ValidationException, match="reason"):
                await service.cancel(po.id, buyer, reason="  ")

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_reject_then_redraft_clears_reason(
        self, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.PENDING_APPROVAL)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.reject(po.id, buyer, reason="Over budget")
            assert po.status == PurchaseOrderStatus.REJECTED
            assert po.rejection_reason == "Over budget"
            await service.transition(po.id, PurchaseOrderStatus.DRAFT, buyer)

        assert po.status == PurchaseOrderStatus.DRAFT
        assert po.rejection_reason is None
        assert po.rejected_at is None

    @pytest.mark.asyncio
    async def test_buyer_cannot_acknowledge(self, mock_db, buyer, supplier_company_id):
        po = _make_po(buyer.company_id, supplier_company_id, PurchaseOrderStatus.SENT_TO_SUPPLIER)
        service = PurchaseOrderService(mock_db)
        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ForbiddenException):
                await service.acknowledge(po.id, buyer)

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_supplier_acknowledges(self, mock_outbox_cls, mock_db, supplier, buyer_company_id):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer_company_id, supplier.company_id, PurchaseOrderStatus.SENT_TO_SUPPLIER)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.acknowledge(po.id, supplier)

        assert po.status == PurchaseOrderStatus.ACKNOWLEDGED
        assert po.acknowledged_at is not None

    @pytest.mark.asyncio
    async def test_other_supplier_cannot_act(self, mock_db, supplier, buyer_company_id):
        po = _make_po(buyer_company_id, uuid.uuid4(), PurchaseOrderStatus.SENT_TO_SUPPLIER)
        service = PurchaseOrderService(mock_db)
        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ForbiddenException):
                await service.acknowledge(po.id, supplier)

    @pytest.mark.asyncio
    async def test_delivery_requires_in_progress(self, mock_db, supplier, buyer_company_id):
        po = _make_po(buyer_company_id, supplier.company_id, PurchaseOrderStatus.ACKNOWLEDGED)
        service = PurchaseOrderService(mock_db)
        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(InvalidTransitionException):
                await service.confirm_delivery(po.id, supplier)

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_confirm_delivery_records_proof(
        self, mock_outbox_cls, mock_db, supplier, buyer_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(buyer_company_id, supplier.company_id, PurchaseOrderStatus.IN_PROGRESS)
        service = PurchaseOrderService(mock_db)
        attachments = [
            {"file_name": "dock.JPG", "size": 2048, "url": "s3://proof/dock.jpg"},
            {"file_name": "pod.pdf", "size": 4096},
        ]

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.confirm_delivery(
                po.id, supplier, attachments=attachments, actual_delivery_date=date(2026, 11, 2)
            )

        assert po.status == PurchaseOrderStatus.DELIVERED
        assert po.actual_delivery_date == date(2026, 11, 2)
        assert [a["kind"] for a in po.delivery_attachments] == ["photo", "document"]
        assert po.delivered_at is not None

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_admin_force_transition(self, mock_outbox_cls, mock_db, admin):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(uuid.uuid4(), uuid.uuid4(), PurchaseOrderStatus.DRAFT)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.force_transition(po.id, PurchaseOrderStatus.COMPLETED, admin)

        assert po.status == PurchaseOrderStatus.COMPLETED
        history = _added(mock_db, PurchaseOrderStatusHistory)
        assert history[-1].is_override is True
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["is_override"] is True

    @pytest.mark.asyncio
    async def test_force_delivery_with_bad_date_is_a_validation_error(self, mock_db, admin):
        po = _make_po(uuid.uuid4(), uuid.uuid4(), PurchaseOrderStatus.IN_PROGRESS)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            with pytest.raises(ValidationException, match="actual_delivery_date"):
                await service.force_transition(
                    po.id,
                    PurchaseOrderStatus.DELIVERED,
                    admin,
                    {"actual_delivery_date": "next tuesday"},
                )
        assert po.status == PurchaseOrderStatus.IN_PROGRESS
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    @patch(f"{SERVICE}.OutboxService")
    async def test_force_delivery_accepts_iso_datetime(self, mock_outbox_cls, mock_db, admin):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        po = _make_po(uuid.uuid4(), uuid.uuid4(), PurchaseOrderStatus.IN_PROGRESS)
        service = PurchaseOrderService(mock_db)

        with patch.object(service, "lock_purchase_order", AsyncMock(return_value=po)):
            await service.force_transition(
                po.id,
                PurchaseOrderStatus.DELIVERED,
                admin,
                {"actual_delivery_date": "2026-11-02T15:30:00+00:00"},
            )

        assert po.actual_delivery_date == date(2026, 11, 2)


class TestDeliveryAttachments:
    def test_unknown_extension_rejected(self):
        with pytest.raises(ValidationException, match="Unsupported"):
            validate_delivery_attachments([{"file_name": "virus.exe", "size": 10}])

    def test_oversized_photo_rejected(self):
        with pytest.raises(ValidationException, match="between 1 byte"):
            validate_delivery_attachments(
                [{"file_name": "big.png", "size": 50 * 1024 * 1024}]
            )

    def test_too_many_documents(self):
        docs = [{"file_name": f"d{i}.pdf", "size": 10} for i in range(4)]
        with pytest.raises(ValidationException, match="At most 3"):
            validate_delivery_attachments(docs)

    def test_none_is_empty(self):
        assert validate_delivery_attachments(None) == []
