"""Tests for BidService: drafts, submission, evaluation, withdrawal and award."""

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from src.models.enums import BidStatus, RfqStatus
from src.modules.bid.bid_service import BidService, build_bid_items, default_total_score

ITEMS = [
    {"item_name": "Pipe", "quantity": 10, "unit_of_measure": "m", "unit_price": "12.50"},
    {"item_name": "Flange", "quantity": 2, "unit_of_measure": "pcs", "unit_price": "40"},
]


def _make_scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    return result


def _make_rfq(company_id, status=RfqStatus.BIDDING_OPEN, bid_deadline=None):
    rfq = MagicMock()
    rfq.id = uuid.uuid4()
    rfq.reference_number = "RFQ-2026-0001"
    rfq.title = "Pipes"
    rfq.company_id = company_id
    rfq.created_by = uuid.uuid4()
    rfq.status = status
    rfq.currency = "USD"
    rfq.bid_deadline = bid_deadline
    return rfq


def _make_bid(rfq, supplier_company_id, status=BidStatus.DRAFT):
    bid = MagicMock()
    bid.id = uuid.uuid4()
    bid.bid_number = "BID-2026-0001"
    bid.rfq_id = rfq.id
    bid.supplier_company_id = supplier_company_id
    bid.submitted_by = uuid.uuid4()
    bid.status = status
    bid.submitted_at = None
    bid.metadata_extra = {}
    bid.total_amount = Decimal("205.00")
    bid.currency = "USD"
    return bid


class TestBuildBidItems:
    def test_totals_default_to_quantity_times_price(self):
        rows, total = build_bid_items(ITEMS)
        assert [r.total_price for r in rows] == [Decimal("125.00"), Decimal("80.00")]
        assert total == Decimal("205.00")

    def test_explicit_total_price_is_kept(self):
        rows, total = build_bid_items(
            [{**ITEMS[0], "total_price": "100.00"}]
        )
        assert rows[0].total_price == Decimal("100.00")
        assert total == Decimal("100.00")

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationException, match="at least one item"):
            build_bid_items([])

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationException):
            build_bid_items([{**ITEMS[0], "quantity": 0}])

    def test_default_total_score_is_mean(self):
        assert default_total_score(Decimal("8"), Decimal("7"), Decimal("9")) == Decimal("8.00")
        assert default_total_score(Decimal("1"), Decimal("2"), Decimal("2")) == Decimal("1.67")


class TestGetBid:
    @pytest.mark.asyncio
    async def test_own_supplier_reads_draft(self, mock_db, supplier, buyer_company_id):
        bid = _make_bid(_make_rfq(buyer_company_id), supplier.company_id)
        mock_db.execute.return_value = _make_scalar_result(bid)

        assert await BidService(mock_db).get_bid(bid.id, supplier) is bid

    @pytest.mark.asyncio
    async def test_competing_supplier_forbidden(self, mock_db, supplier, buyer_company_id):
        bid = _make_bid(_make_rfq(buyer_company_id), uuid.uuid4(), BidStatus.SUBMITTED)
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(ForbiddenException):
            await BidService(mock_db).get_bid(bid.id, supplier)

    @pytest.mark.asyncio
    async def test_buyer_reads_submitted_bid(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_db.execute.return_value = _make_scalar_result(bid)
        mock_db.get.return_value = rfq

        assert await BidService(mock_db).get_bid(bid.id, buyer) is bid

    @pytest.mark.asyncio
    async def test_other_buyer_company_forbidden(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(uuid.uuid4())
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_db.execute.return_value = _make_scalar_result(bid)
        mock_db.get.return_value = rfq

        with pytest.raises(ForbiddenException):
            await BidService(mock_db).get_bid(bid.id, buyer)

    @pytest.mark.asyncio
    async def test_draft_hidden_from_buyer(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id)
        mock_db.execute.return_value = _make_scalar_result(bid)
        mock_db.get.return_value = rfq

        with pytest.raises(NotFoundException):
            await BidService(mock_db).get_bid(bid.id, buyer)



class TestSaveDraft:
    @pytest.mark.asyncio
    async def test_creates_draft(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(None)
        service = BidService(mock_db)

        with patch.object(
            service.sequences, "next_number", AsyncMock(return_value="BID-2026-0003")
        ):
            bid, created = await service.save_draft(rfq.id, supplier, items=ITEMS)

        assert created is True
        assert bid.status == BidStatus.DRAFT
        assert bid.bid_number == "BID-2026-0003"
        assert bid.total_amount == Decimal("205.00")
        assert bid.currency == "USD"
        assert bid.supplier_company_id == supplier.company_id

    @pytest.mark.asyncio
    async def test_second_draft_replaces_first(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        existing = _make_bid(rfq, supplier.company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(existing),  # existing draft
            MagicMock(),  # delete old items
        ]
        service = BidService(mock_db)

        bid, created = await service.save_draft(rfq.id, supplier, items=ITEMS[:1], notes="v2")

        assert created is False
        assert bid is existing
        assert bid.total_amount == Decimal("125.00")
        assert bid.notes == "v2"

    @pytest.mark.asyncio
    async def test_submitted_bid_blocks_new_draft(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        existing = _make_bid(rfq, supplier.company_id, BidStatus.SUBMITTED)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(existing)

        with pytest.raises(ConflictException, match="already has a submitted bid"):
            await BidService(mock_db).save_draft(rfq.id, supplier, items=ITEMS)

    @pytest.mark.asyncio
    async def test_withdrawn_bid_blocks_new_draft(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        existing = _make_bid(rfq, supplier.company_id, BidStatus.WITHDRAWN)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(existing)

        with pytest.raises(ConflictException):
            await BidService(mock_db).save_draft(rfq.id, supplier, items=ITEMS)

    @pytest.mark.asyncio
    async def test_uninvited_supplier_on_published_rfq(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id, RfqStatus.PUBLISHED)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(None)

        with pytest.raises(ForbiddenException, match="not invited"):
            await BidService(mock_db).save_draft(rfq.id, supplier, items=ITEMS)

    @pytest.mark.asyncio
    async def test_closed_rfq_rejects_bids(self, mock_db, supplier, buyer_company_id):
        mock_db.get.return_value = _make_rfq(buyer_company_id, RfqStatus.BIDDING_CLOSED)

        with pytest.raises(PreconditionFailedException, match="not accepting bids"):
            await BidService(mock_db).save_draft(uuid.uuid4(), supplier, items=ITEMS)

    @pytest.mark.asyncio
    async def test_buyer_cannot_bid(self, mock_db, buyer):
        with pytest.raises(ForbiddenException):
            await BidService(mock_db).save_draft(uuid.uuid4(), buyer, items=ITEMS)

    @pytest.mark.asyncio
    async def test_delete_submitted_bid_rejected(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, supplier.company_id, BidStatus.SUBMITTED)
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(BusinessRuleException, match="only draft bids"):
            await BidService(mock_db).delete_draft(bid.id, supplier)


class TestSubmit:
    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.OutboxService")
    async def test_submit_stamps_and_notifies(
        self, mock_outbox_cls, mock_db, supplier, buyer_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, supplier.company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),  # lock bid
            _make_scalar_result(2),  # item count
            MagicMock(),  # invitation update
        ]

        await BidService(mock_db).submit(bid.id, supplier)

        assert bid.status == BidStatus.SUBMITTED
        assert bid.submitted_at is not None
        call = mock_outbox_cls.return_value.publish_event.call_args
        assert call.kwargs["event_type"] == "bid.submitted"
        assert call.kwargs["payload"]["buyer_user_id"] == str(rfq.created_by)
        assert call.kwargs["payload"]["late"] is False

    @pytest.mark.asyncio
    async def test_submit_without_items_fails(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, supplier.company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [_make_scalar_result(bid), _make_scalar_result(0)]

        with pytest.raises(PreconditionFailedException, match="without items"):
            await BidService(mock_db).submit(bid.id, supplier)
        assert bid.status == BidStatus.DRAFT

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.OutboxService")
    @patch("src.modules.bid.bid_service.settings")
    async def test_late_bid_flagged_when_allowed(
        self, mock_settings, mock_outbox_cls, mock_db, supplier, buyer_company_id
    ):
        mock_settings.late_bid_policy = "allow"
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer_company_id, bid_deadline=datetime.now(UTC) - timedelta(hours=1))
        bid = _make_bid(rfq, supplier.company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [
            _make_scalar_result(bid),
            _make_scalar_result(1),
            MagicMock(),
        ]

        await BidService(mock_db).submit(bid.id, supplier)

        assert bid.status == BidStatus.SUBMITTED
        assert bid.metadata_extra["late"] is True
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["late"] is True

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.settings")
    async def test_late_bid_rejected_by_policy(
        self, mock_settings, mock_db, supplier, buyer_company_id
    ):
        mock_settings.late_bid_policy = "reject"
        rfq = _make_rfq(buyer_company_id, bid_deadline=datetime.now(UTC) - timedelta(hours=1))
        bid = _make_bid(rfq, supplier.company_id)
        mock_db.get.return_value = rfq
        mock_db.execute.side_effect = [_make_scalar_result(bid), _make_scalar_result(1)]

        with pytest.raises(PreconditionFailedException, match="deadline"):
            await BidService(mock_db).submit(bid.id, supplier)
        assert bid.status == BidStatus.DRAFT

    @pytest.mark.asyncio
    async def test_other_supplier_cannot_submit(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, uuid.uuid4())
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(ForbiddenException):
            await BidService(mock_db).submit(bid.id, supplier)


class TestEvaluateAndWithdraw:
    @pytest.mark.asyncio
    async def test_evaluate_defaults_total(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(bid)

        await BidService(mock_db).evaluate(
            bid.id, buyer, Decimal("8"), Decimal("6"), Decimal("7"), evaluation_notes="ok"
        )

        assert bid.total_score == Decimal("7.00")
        assert bid.evaluated_by == buyer.id

    @pytest.mark.asyncio
    async def test_evaluate_score_out_of_range(self, mock_db, buyer, supplier_company_id):
        rfq = _make_rfq(buyer.company_id)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(ValidationException, match="technical_score"):
            await BidService(mock_db).evaluate(
                bid.id, buyer, Decimal("11"), Decimal("6"), Decimal("7")
            )

    @pytest.mark.asyncio
    async def test_supplier_cannot_evaluate(self, mock_db, supplier):
        with pytest.raises(ForbiddenException):
            await BidService(mock_db).evaluate(
                uuid.uuid4(), supplier, Decimal("5"), Decimal("5"), Decimal("5")
            )

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.OutboxService")
    async def test_withdraw_submitted_bid(
        self, mock_outbox_cls, mock_db, supplier, buyer_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, supplier.company_id, BidStatus.SUBMITTED)
        mock_db.get.return_value = rfq
        mock_db.execute.return_value = _make_scalar_result(bid)

        await BidService(mock_db).withdraw(bid.id, supplier, reason="Capacity")

        assert bid.status == BidStatus.WITHDRAWN
        assert bid.withdrawn_at is not None
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["to_status"] == "withdrawn"
        assert payload["reason"] == "Capacity"

    @pytest.mark.asyncio
    async def test_awarded_bid_cannot_be_withdrawn(self, mock_db, supplier, buyer_company_id):
        rfq = _make_rfq(buyer_company_id)
        bid = _make_bid(rfq, supplier.company_id, BidStatus.AWARDED)
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(InvalidTransitionException):
            await BidService(mock_db).withdraw(bid.id, supplier)


class TestAward:
    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.OutboxService")
    @patch("src.modules.bid.bid_service.RfqService")
    async def test_award_moves_rfq_with_bid(
        self, mock_rfq_service_cls, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id, RfqStatus.UNDER_EVALUATION)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.UNDER_REVIEW)
        rfq_service = mock_rfq_service_cls.return_value
        rfq_service.lock_rfq = AsyncMock(return_value=rfq)
        rfq_service.award = AsyncMock(return_value=rfq)
        mock_db.execute.return_value = _make_scalar_result(bid)

        result = await BidService(mock_db).award(bid.id, buyer)

        assert result.status == BidStatus.AWARDED
        rfq_service.award.assert_awaited_once_with(
            rfq.id, buyer, awarded_supplier_id=supplier_company_id, bid_id=bid.id
        )
        payload = mock_outbox_cls.return_value.publish_event.call_args.kwargs["payload"]
        assert payload["from_status"] == "under_review"
        assert payload["to_status"] == "awarded"

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.OutboxService")
    @patch("src.modules.bid.bid_service.RfqService")
    async def test_award_is_idempotent(
        self, mock_rfq_service_cls, mock_outbox_cls, mock_db, buyer, supplier_company_id
    ):
        mock_outbox_cls.return_value.publish_event = AsyncMock()
        rfq = _make_rfq(buyer.company_id, RfqStatus.AWARDED)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.AWARDED)
        rfq_service = mock_rfq_service_cls.return_value
        rfq_service.lock_rfq = AsyncMock(return_value=rfq)
        rfq_service.award = AsyncMock()
        mock_db.execute.return_value = _make_scalar_result(bid)

        result = await BidService(mock_db).award(bid.id, buyer)

        assert result is bid
        rfq_service.award.assert_not_awaited()
        mock_outbox_cls.return_value.publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.RfqService")
    async def test_award_on_draft_rfq_fails(
        self, mock_rfq_service_cls, mock_db, buyer, supplier_company_id
    ):
        rfq = _make_rfq(buyer.company_id, RfqStatus.DRAFT)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        rfq_service = mock_rfq_service_cls.return_value
        rfq_service.lock_rfq = AsyncMock(return_value=rfq)
        rfq_service.award = AsyncMock()
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(PreconditionFailedException, match="cannot be awarded"):
            await BidService(mock_db).award(bid.id, buyer)
        rfq_service.award.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("src.modules.bid.bid_service.RfqService")
    async def test_other_buyer_cannot_award(
        self, mock_rfq_service_cls, mock_db, buyer, supplier_company_id
    ):
        rfq = _make_rfq(uuid.uuid4(), RfqStatus.BIDDING_CLOSED)
        bid = _make_bid(rfq, supplier_company_id, BidStatus.SUBMITTED)
        mock_rfq_service_cls.return_value.lock_rfq = AsyncMock(return_value=rfq)
        mock_db.execute.return_value = _make_scalar_result(bid)

        with pytest.raises(ForbiddenException):
            await BidService(mock_db).award(bid.id, buyer)
