"""Notification types and email subjects."""

TYPE_RFQ_PUBLISHED = "rfq_published"
TYPE_RFQ_INVITATION = "rfq_invitation"
TYPE_RFQ_STATUS_CHANGED = "rfq_status_changed"
TYPE_RFQ_CANCELLED = "rfq_cancelled"
TYPE_BID_SUBMITTED = "bid_submitted"
TYPE_BID_AWARDED = "bid_awarded"
TYPE_BID_REJECTED = "bid_rejected"
TYPE_BID_WITHDRAWN = "bid_withdrawn"
TYPE_NEGOTIATION_STARTED = "negotiation_started"
TYPE_NEGOTIATION_MESSAGE = "negotiation_message"
TYPE_NEGOTIATION_STATUS_CHANGED = "negotiation_status_changed"
TYPE_PO_CREATED = "po_created"
TYPE_PO_STATUS_CHANGED = "po_status_changed"
TYPE_PO_MODIFICATION_REQUESTED = "po_modification_requested"
TYPE_PO_MODIFICATION_RESOLVED = "po_modification_resolved"

# Jinja2 subject templates; missing keys render as ""
EMAIL_SUBJECTS: dict[str, str] = {
    TYPE_RFQ_PUBLISHED: "New RFQ available: {{ title }}",
    TYPE_RFQ_INVITATION: "You are invited to bid on {{ title }}",
    TYPE_RFQ_STATUS_CHANGED: "RFQ {{ reference_number }} is now {{ status_label }}",
    TYPE_RFQ_CANCELLED: "RFQ {{ reference_number }} was cancelled",
    TYPE_BID_SUBMITTED: "New bid {{ bid_number }} on {{ rfq_title }}",
    TYPE_BID_AWARDED: "Your bid on {{ title }} was awarded",
    TYPE_BID_REJECTED: "Your bid on {{ rfq_title }} was not selected",
    TYPE_BID_WITHDRAWN: "Bid {{ bid_number }} was withdrawn",
    TYPE_NEGOTIATION_STARTED: "Negotiation opened on bid {{ bid_number }}",
    TYPE_NEGOTIATION_MESSAGE: "New negotiation message",
    TYPE_NEGOTIATION_STATUS_CHANGED: "Negotiation is now {{ to_status }}",
    TYPE_PO_CREATED: "New purchase order {{ po_number }}",
    TYPE_PO_STATUS_CHANGED: "Purchase order {{ po_number }}: {{ status_label }}",
    TYPE_PO_MODIFICATION_REQUESTED: "Change requested on purchase order {{ po_number }}",
    TYPE_PO_MODIFICATION_RESOLVED: "Change on purchase order {{ po_number }} was {{ resolution }}",
}

# Types that never send email (chat traffic is delivered live instead)
IN_APP_ONLY_TYPES = frozenset({TYPE_NEGOTIATION_MESSAGE})

# PO statuses the buyer is told about, with the message shown to them
PO_BUYER_STATUS_MESSAGES: dict[str, str] = {
    "acknowledged": "has been acknowledged by the supplier",
    "in_progress": "is now in progress",
    "delivered": "has been delivered",
    "completed": "has been completed",
}

# PO statuses the supplier is told about
PO_SUPPLIER_STATUS_MESSAGES: dict[str, str] = {
    "sent_to_supplier": "has been sent to you",
    "cancelled": "has been cancelled",
    "completed": "has been completed",
}

BROADCAST_MESSAGE_SENT = "message.sent"
BROADCAST_STATUS_CHANGED = "status.changed"
