"""Purchase order transition table, modification allow-list and event types."""

from __future__ import annotations

from src.models.enums import PurchaseOrderStatus, UserRole
from src.modules.workflow.state_machine import StatusMachine

_BUYER_OR_ADMIN = frozenset({UserRole.BUYER, UserRole.ADMIN})
_SUPPLIER = frozenset({UserRole.SUPPLIER})
_ANY_PARTY = frozenset({UserRole.SUPPLIER, UserRole.BUYER, UserRole.ADMIN})

PO_TRANSITIONS: dict[PurchaseOrderStatus, dict[PurchaseOrderStatus, frozenset[UserRole]]] = {
    PurchaseOrderStatus.DRAFT: {
        PurchaseOrderStatus.PENDING_APPROVAL: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.APPROVED: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.PENDING_APPROVAL: {
        PurchaseOrderStatus.APPROVED: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.REJECTED: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.APPROVED: {
        PurchaseOrderStatus.SENT_TO_SUPPLIER: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.SENT_TO_SUPPLIER: {
        PurchaseOrderStatus.ACKNOWLEDGED: _SUPPLIER,
        PurchaseOrderStatus.IN_PROGRESS: _SUPPLIER,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.ACKNOWLEDGED: {
        PurchaseOrderStatus.IN_PROGRESS: _SUPPLIER,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.IN_PROGRESS: {
        PurchaseOrderStatus.DELIVERED: _ANY_PARTY,
    },
    PurchaseOrderStatus.DELIVERED: {
        PurchaseOrderStatus.COMPLETED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.REJECTED: {
        PurchaseOrderStatus.DRAFT: _BUYER_OR_ADMIN,
        PurchaseOrderStatus.CANCELLED: _BUYER_OR_ADMIN,
    },
    PurchaseOrderStatus.COMPLETED: {},
    PurchaseOrderStatus.CANCELLED: {},
}

PO_STATUS_LABELS: dict[PurchaseOrderStatus, str] = {
    PurchaseOrderStatus.DRAFT: "Draft",
    PurchaseOrderStatus.PENDING_APPROVAL: "Pending Approval",
    PurchaseOrderStatus.APPROVED: "Approved",
    PurchaseOrderStatus.SENT_TO_SUPPLIER: "Sent to Supplier",
    PurchaseOrderStatus.ACKNOWLEDGED: "Acknowledged",
    PurchaseOrderStatus.IN_PROGRESS: "In Progress",
    PurchaseOrderStatus.DELIVERED: "Delivered",
    PurchaseOrderStatus.COMPLETED: "Completed",
    PurchaseOrderStatus.CANCELLED: "Cancelled",
    PurchaseOrderStatus.REJECTED: "Rejected",
}

PO_STATUS_DESCRIPTIONS: dict[PurchaseOrderStatus, str] = {
    PurchaseOrderStatus.DRAFT: "Purchase order is being prepared",
    PurchaseOrderStatus.PENDING_APPROVAL: "Waiting for internal approval",
    PurchaseOrderStatus.APPROVED: "Approved and ready to send",
    PurchaseOrderStatus.SENT_TO_SUPPLIER: "Sent to the supplier",
    PurchaseOrderStatus.ACKNOWLEDGED: "Supplier has acknowledged the order",
    PurchaseOrderStatus.IN_PROGRESS: "Supplier is fulfilling the order",
    PurchaseOrderStatus.DELIVERED: "Goods have been delivered",
    PurchaseOrderStatus.COMPLETED: "Order is complete",
    PurchaseOrderStatus.CANCELLED: "Order has been cancelled",
    PurchaseOrderStatus.REJECTED: "Order was rejected during approval",
}

PO_MACHINE: StatusMachine[PurchaseOrderStatus] = StatusMachine(
    entity="purchase_order",
    transitions=PO_TRANSITIONS,
    labels=PO_STATUS_LABELS,
    descriptions=PO_STATUS_DESCRIPTIONS,
)

APPROVABLE_STATUSES: set[PurchaseOrderStatus] = {
    PurchaseOrderStatus.DRAFT,
    PurchaseOrderStatus.PENDING_APPROVAL,
}

# Issued orders whose field edits need approval through the modification ledger
MODIFIABLE_STATUSES: set[PurchaseOrderStatus] = {
    PurchaseOrderStatus.SENT_TO_SUPPLIER,
    PurchaseOrderStatus.ACKNOWLEDGED,
    PurchaseOrderStatus.IN_PROGRESS,
}

MODIFIABLE_FIELDS: frozenset[str] = frozenset(
    {
        "delivery_address",
        "payment_terms",
        "notes",
        "expected_delivery_date",
        "terms_conditions",
        "internal_notes",
    }
)

# Timestamp column stamped when the order enters each status
STATUS_TIMESTAMP_FIELDS: dict[PurchaseOrderStatus, str] = {
    PurchaseOrderStatus.SENT_TO_SUPPLIER: "sent_at",
    PurchaseOrderStatus.ACKNOWLEDGED: "acknowledged_at",
    PurchaseOrderStatus.IN_PROGRESS: "started_at",
    PurchaseOrderStatus.DELIVERED: "delivered_at",
    PurchaseOrderStatus.COMPLETED: "completed_at",
    PurchaseOrderStatus.CANCELLED: "cancelled_at",
    PurchaseOrderStatus.REJECTED: "rejected_at",
}

EVENT_PO_CREATED = "purchase_order.created"
EVENT_PO_STATUS_CHANGED = "purchase_order.status_changed"
EVENT_PO_MODIFICATION_REQUESTED = "purchase_order.modification_requested"
EVENT_PO_MODIFICATION_RESOLVED = "purchase_order.modification_resolved"
