"""Tests for the transition tables and the generic StatusMachine."""

import pytest

from src.exceptions import ForbiddenException, InvalidTransitionException
from src.models.enums import BidStatus, PurchaseOrderStatus, RfqStatus, UserRole
from src.modules.bid.constants import BID_MACHINE
from src.modules.purchase_order.constants import PO_MACHINE
from src.modules.rfq.constants import RFQ_MACHINE


class TestRfqTable:
    def test_draft_cannot_jump_to_awarded(self):
        assert not RFQ_MACHINE.can_transition(RfqStatus.DRAFT, RfqStatus.AWARDED, UserRole.BUYER)
        assert not RFQ_MACHINE.can_transition(RfqStatus.DRAFT, RfqStatus.AWARDED, UserRole.ADMIN)

    def test_admin_override_reaches_awarded(self):
        assert RFQ_MACHINE.can_force_transition(
            RfqStatus.DRAFT, RfqStatus.AWARDED, UserRole.ADMIN
        )
        assert not RFQ_MACHINE.can_force_transition(
            RfqStatus.DRAFT, RfqStatus.AWARDED, UserRole.BUYER
        )

    def test_completed_is_terminal(self):
        assert RFQ_MACHINE.is_terminal(RfqStatus.COMPLETED)
        assert RFQ_MACHINE.next_states(RfqStatus.COMPLETED) == []

    def test_cancelled_can_reopen_to_draft(self):
        assert RFQ_MACHINE.can_transition(RfqStatus.CANCELLED, RfqStatus.DRAFT, UserRole.BUYER)

    def test_supplier_cannot_drive_rfq(self):
        with pytest.raises(ForbiddenException):
            RFQ_MACHINE.check_transition(
                RfqStatus.DRAFT, RfqStatus.PUBLISHED, UserRole.SUPPLIER
            )

    def test_invalid_edge_reports_allowed_targets(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            RFQ_MACHINE.check_transition(RfqStatus.DRAFT, RfqStatus.COMPLETED, UserRole.BUYER)
        exc = exc_info.value
        assert exc.current_status == "draft"
        assert exc.requested_status == "completed"
        assert set(exc.allowed) == {"published", "cancelled"}
        assert exc.details[0]["allowed"] == exc.allowed

    def test_every_status_has_a_row(self):
        assert set(RFQ_MACHINE.states) == set(RfqStatus)


class TestBidTable:
    def test_withdrawn_is_terminal(self):
        assert BID_MACHINE.is_terminal(BidStatus.WITHDRAWN)

    @pytest.mark.parametrize("status", [BidStatus.REJECTED, BidStatus.WITHDRAWN])
    def test_rejected_and_withdrawn_have_no_way_out(self, status):
        assert BID_MACHINE.next_states(status) == []
        assert not BID_MACHINE.can_transition(status, BidStatus.UNDER_REVIEW, UserRole.BUYER)
        with pytest.raises(InvalidTransitionException):
            BID_MACHINE.check_transition(status, BidStatus.UNDER_REVIEW, UserRole.BUYER)

    def test_only_supplier_submits(self):
        assert BID_MACHINE.can_transition(BidStatus.DRAFT, BidStatus.SUBMITTED, UserRole.SUPPLIER)
        assert not BID_MACHINE.can_transition(
            BidStatus.DRAFT, BidStatus.SUBMITTED, UserRole.BUYER
        )

    def test_every_status_has_a_row(self):
        assert set(BID_MACHINE.states) == set(BidStatus)


class TestPurchaseOrderTable:
    def test_only_supplier_acknowledges(self):
        assert PO_MACHINE.can_transition(
            PurchaseOrderStatus.SENT_TO_SUPPLIER,
            PurchaseOrderStatus.ACKNOWLEDGED,
            UserRole.SUPPLIER,
        )
        with pytest.raises(ForbiddenException):
            PO_MACHINE.check_transition(
                PurchaseOrderStatus.SENT_TO_SUPPLIER,
                PurchaseOrderStatus.ACKNOWLEDGED,
                UserRole.BUYER,
            )

    def test_delivered_only_from_in_progress(self):
        sources = [
            s
            for s in PurchaseOrderStatus
            if PurchaseOrderStatus.DELIVERED in PO_MACHINE.next_states(s)
        ]
        assert sources == [PurchaseOrderStatus.IN_PROGRESS]

    def test_completed_and_cancelled_are_terminal(self):
        assert PO_MACHINE.is_terminal(PurchaseOrderStatus.COMPLETED)
        assert PO_MACHINE.is_terminal(PurchaseOrderStatus.CANCELLED)


class TestAvailableTransitions:
    def test_buyer_sees_table_targets_only(self):
        targets = RFQ_MACHINE.available_transitions(RfqStatus.DRAFT, UserRole.BUYER)
        assert [t.status for t in targets] == ["published", "cancelled"]
        assert not any(t.is_override for t in targets)
        assert targets[0].label == "Published"

    def test_admin_sees_overrides_for_every_other_status(self):
        targets = RFQ_MACHINE.available_transitions(RfqStatus.DRAFT, UserRole.ADMIN)
        statuses = {t.status for t in targets}
        assert statuses == {s.value for s in RfqStatus} - {"draft"}
        overrides = [t for t in targets if t.is_override]
        assert all(t.label.endswith("(Admin Override)") for t in overrides)
        assert "published" not in {t.status for t in overrides}

    def test_string_roles_are_accepted(self):
        assert RFQ_MACHINE.can_transition(RfqStatus.DRAFT, RfqStatus.PUBLISHED, "BUYER")

    def test_force_to_same_status_is_rejected(self):
        with pytest.raises(InvalidTransitionException):
            PO_MACHINE.check_force_transition(
                PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.DRAFT, UserRole.ADMIN
            )
