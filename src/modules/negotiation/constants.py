"""Negotiation statuses, message limits and outbox event types."""

from src.models.enums import NegotiationStatus

NEGOTIATION_STATUS_LABELS: dict[NegotiationStatus, str] = {
    NegotiationStatus.ACTIVE: "Active",
    NegotiationStatus.CLOSED: "Closed",
    NegotiationStatus.CANCELLED: "Cancelled",
}

MIN_MESSAGE_LENGTH = 1
MAX_MESSAGE_LENGTH = 1000

# Negotiations that still accept messages; closed ones reopen on a counter offer
MESSAGEABLE_STATUSES: set[NegotiationStatus] = {
    NegotiationStatus.ACTIVE,
    NegotiationStatus.CLOSED,
}

DEFAULT_ACCEPT_MESSAGE = "Offer accepted"
DEFAULT_REJECT_MESSAGE = "Offer rejected"
DEFAULT_WITHDRAW_MESSAGE = "Offer withdrawn"

EVENT_NEGOTIATION_STARTED = "negotiation.started"
EVENT_NEGOTIATION_MESSAGE_SENT = "negotiation.message_sent"
EVENT_NEGOTIATION_STATUS_CHANGED = "negotiation.status_changed"

# Characters of the message body copied into notifications
MESSAGE_PREVIEW_LENGTH = 120
