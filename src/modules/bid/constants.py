"""Bid transition table and outbox event types."""

from __future__ import annotations

from src.models.enums import BidStatus, RfqStatus, UserRole
from src.modules.workflow.state_machine import StatusMachine

_SUPPLIER = frozenset({UserRole.SUPPLIER})
_BUYER_OR_ADMIN = frozenset({UserRole.BUYER, UserRole.ADMIN})

BID_TRANSITIONS: dict[BidStatus, dict[BidStatus, frozenset[UserRole]]] = {
    BidStatus.DRAFT: {
        BidStatus.SUBMITTED: _SUPPLIER,
        BidStatus.WITHDRAWN: _SUPPLIER,
    },
    BidStatus.SUBMITTED: {
        BidStatus.UNDER_REVIEW: _BUYER_OR_ADMIN,
        BidStatus.AWARDED: _BUYER_OR_ADMIN,
        BidStatus.REJECTED: _BUYER_OR_ADMIN,
        BidStatus.WITHDRAWN: _SUPPLIER,
    },
    BidStatus.UNDER_REVIEW: {
        BidStatus.AWARDED: _BUYER_OR_ADMIN,
        BidStatus.REJECTED: _BUYER_OR_ADMIN,
        BidStatus.WITHDRAWN: _SUPPLIER,
    },
    BidStatus.AWARDED: {},
    BidStatus.REJECTED: {},
    BidStatus.WITHDRAWN: {},
}

BID_STATUS_LABELS: dict[BidStatus, str] = {
    BidStatus.DRAFT: "Draft",
    BidStatus.SUBMITTED: "Submitted",
    BidStatus.UNDER_REVIEW: "Under Review",
    BidStatus.AWARDED: "Awarded",
    BidStatus.REJECTED: "Rejected",
    BidStatus.WITHDRAWN: "Withdrawn",
}

BID_MACHINE: StatusMachine[BidStatus] = StatusMachine(
    entity="bid",
    transitions=BID_TRANSITIONS,
    labels=BID_STATUS_LABELS,
)

# Score range for technical / commercial / delivery evaluation
MIN_SCORE = 1
MAX_SCORE = 10

# Statuses in which bid scores may be recorded
EVALUABLE_STATUSES: set[BidStatus] = {BidStatus.SUBMITTED}

# Bid statuses a negotiation can be opened on
NEGOTIABLE_STATUSES: set[BidStatus] = {
    BidStatus.SUBMITTED,
    BidStatus.UNDER_REVIEW,
    BidStatus.AWARDED,
}

# RFQ statuses from which the coupled award can move the RFQ to awarded
RFQ_AWARD_SOURCE_STATUSES: set[RfqStatus] = {
    RfqStatus.BIDDING_OPEN,
    RfqStatus.BIDDING_CLOSED,
    RfqStatus.UNDER_EVALUATION,
}

EVENT_BID_SUBMITTED = "bid.submitted"
EVENT_BID_STATUS_CHANGED = "bid.status_changed"
