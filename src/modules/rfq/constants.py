"""RFQ transition table, labels, and outbox event types."""

from __future__ import annotations

from src.models.enums import RfqStatus, UserRole
from src.modules.workflow.state_machine import StatusMachine

_BUYER_OR_ADMIN = frozenset({UserRole.BUYER, UserRole.ADMIN})

# from_status -> {to_status -> roles allowed to trigger it}
RFQ_TRANSITIONS: dict[RfqStatus, dict[RfqStatus, frozenset[UserRole]]] = {
    RfqStatus.DRAFT: {
        RfqStatus.PUBLISHED: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.PUBLISHED: {
        RfqStatus.BIDDING_OPEN: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.BIDDING_OPEN: {
        RfqStatus.BIDDING_CLOSED: _BUYER_OR_ADMIN,
        RfqStatus.AWARDED: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.BIDDING_CLOSED: {
        RfqStatus.UNDER_EVALUATION: _BUYER_OR_ADMIN,
        RfqStatus.AWARDED: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.UNDER_EVALUATION: {
        RfqStatus.AWARDED: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.AWARDED: {
        RfqStatus.COMPLETED: _BUYER_OR_ADMIN,
        RfqStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    RfqStatus.COMPLETED: {},
    RfqStatus.CANCELLED: {
        RfqStatus.DRAFT: _BUYER_OR_ADMIN,
    },
}

RFQ_STATUS_LABELS: dict[RfqStatus, str] = {
    RfqStatus.DRAFT: "Draft",
    RfqStatus.PUBLISHED: "Published",
    RfqStatus.BIDDING_OPEN: "Bidding Open",
    RfqStatus.BIDDING_CLOSED: "Bidding Closed",
    RfqStatus.UNDER_EVALUATION: "Under Evaluation",
    RfqStatus.AWARDED: "Awarded",
    RfqStatus.COMPLETED: "Completed",
    RfqStatus.CANCELLED: "Cancelled",
}

RFQ_STATUS_DESCRIPTIONS: dict[RfqStatus, str] = {
    RfqStatus.DRAFT: "RFQ is being prepared",
    RfqStatus.PUBLISHED: "RFQ is published and visible to invited suppliers",
    RfqStatus.BIDDING_OPEN: "Suppliers can submit bids",
    RfqStatus.BIDDING_CLOSED: "Bidding period has ended",
    RfqStatus.UNDER_EVALUATION: "Bids are being evaluated",
    RfqStatus.AWARDED: "Contract has been awarded",
    RfqStatus.COMPLETED: "RFQ process is complete",
    RfqStatus.CANCELLED: "RFQ has been cancelled",
}

RFQ_MACHINE: StatusMachine[RfqStatus] = StatusMachine(
    entity="rfq",
    transitions=RFQ_TRANSITIONS,
    labels=RFQ_STATUS_LABELS,
    descriptions=RFQ_STATUS_DESCRIPTIONS,
)

# Statuses where the RFQ content (title, items, dates) can still be edited
EDITABLE_STATUSES: set[RfqStatus] = {RfqStatus.DRAFT}

# Statuses where suppliers can be added to the invitation list
INVITABLE_STATUSES: set[RfqStatus] = {RfqStatus.DRAFT, RfqStatus.PUBLISHED}

# Statuses where suppliers hear about status changes
SUPPLIER_FACING_STATUSES: set[RfqStatus] = {
    RfqStatus.BIDDING_OPEN,
    RfqStatus.BIDDING_CLOSED,
    RfqStatus.AWARDED,
    RfqStatus.CANCELLED,
}

TERMINAL_STATUSES: set[RfqStatus] = {RfqStatus.COMPLETED, RfqStatus.CANCELLED}

# Event type strings for the outbox
EVENT_RFQ_STATUS_CHANGED = "rfq.status_changed"
EVENT_RFQ_PUBLISHED = "rfq.published"
EVENT_RFQ_BIDDING_OPENED = "rfq.bidding_opened"
EVENT_RFQ_BIDDING_CLOSED = "rfq.bidding_closed"
EVENT_RFQ_AWARDED = "rfq.awarded"
EVENT_RFQ_COMPLETED = "rfq.completed"
EVENT_RFQ_CANCELLED = "rfq.cancelled"
EVENT_RFQ_SUPPLIERS_INVITED = "rfq.suppliers_invited"

STATUS_EVENT_MAP: dict[RfqStatus, str] = {
    RfqStatus.PUBLISHED: EVENT_RFQ_PUBLISHED,
    RfqStatus.BIDDING_OPEN: EVENT_RFQ_BIDDING_OPENED,
    RfqStatus.BIDDING_CLOSED: EVENT_RFQ_BIDDING_CLOSED,
    RfqStatus.AWARDED: EVENT_RFQ_AWARDED,
    RfqStatus.COMPLETED: EVENT_RFQ_COMPLETED,
    RfqStatus.CANCELLED: EVENT_RFQ_CANCELLED,
}
