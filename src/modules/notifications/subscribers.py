"""Outbox subscribers that fan workflow events out to users.

Every handler is best-effort: it runs in its own worker session and a
failure is logged without affecting the other handlers for the event.
"""

from __future__ import annotations

import functools
import logging

from src.database.session import worker_session
from src.modules.bid.constants import EVENT_BID_STATUS_CHANGED, EVENT_BID_SUBMITTED
from src.modules.events.handlers import EventHandlerRegistry
from src.modules.negotiation.constants import (
    EVENT_NEGOTIATION_MESSAGE_SENT,
    EVENT_NEGOTIATION_STARTED,
    EVENT_NEGOTIATION_STATUS_CHANGED,
)
from src.modules.notifications.broadcaster import Broadcaster, negotiation_channel
from src.modules.notifications.constants import (
    BROADCAST_MESSAGE_SENT,
    BROADCAST_STATUS_CHANGED,
    PO_BUYER_STATUS_MESSAGES,
    PO_SUPPLIER_STATUS_MESSAGES,
    TYPE_BID_AWARDED,
    TYPE_BID_REJECTED,
    TYPE_BID_SUBMITTED,
    TYPE_BID_WITHDRAWN,
    TYPE_NEGOTIATION_MESSAGE,
    TYPE_NEGOTIATION_STARTED,
    TYPE_NEGOTIATION_STATUS_CHANGED,
    TYPE_PO_CREATED,
    TYPE_PO_MODIFICATION_REQUESTED,
    TYPE_PO_MODIFICATION_RESOLVED,
    TYPE_PO_STATUS_CHANGED,
    TYPE_RFQ_CANCELLED,
    TYPE_RFQ_INVITATION,
    TYPE_RFQ_PUBLISHED,
)
from src.modules.notifications.notification_service import NotificationService
from src.modules.purchase_order.constants import (
    EVENT_PO_CREATED,
    EVENT_PO_MODIFICATION_REQUESTED,
    EVENT_PO_MODIFICATION_RESOLVED,
    EVENT_PO_STATUS_CHANGED,
)
from src.modules.rfq.constants import (
    EVENT_RFQ_AWARDED,
    EVENT_RFQ_BIDDING_OPENED,
    EVENT_RFQ_CANCELLED,
    EVENT_RFQ_SUPPLIERS_INVITED,
)

logger = logging.getLogger(__name__)

broadcaster = Broadcaster()


def best_effort(func):
    """Give the handler a NotificationService bound to a fresh worker session."""

    @functools.wraps(func)
    def wrapper(payload: dict) -> None:
        try:
            with worker_session() as session:
                func(payload, NotificationService(session))
        except Exception:
            logger.exception("Notification handler %s failed", func.__name__)

    return wrapper


# ---------------------------------------------------------------------------
# RFQ
# ---------------------------------------------------------------------------


def _notify_supplier_companies(
    notifier: NotificationService, payload: dict, type: str, title: str, message: str
) -> None:
    for company_id in payload.get("supplier_company_ids") or []:
        notifier.notify_company(
            company_id,
            type,
            title,
            message,
            related_user_id=payload.get("created_by"),
            related_entity_id=payload["rfq_id"],
            related_entity_type="rfq",
            data={
                "rfq_id": payload["rfq_id"],
                "reference_number": payload.get("reference_number"),
                "title": payload.get("title"),
            },
        )


@best_effort
def on_rfq_bidding_opened(payload: dict, notifier: NotificationService) -> None:
    _notify_supplier_companies(
        notifier,
        payload,
        TYPE_RFQ_PUBLISHED,
        "New RFQ Available",
        f"RFQ '{payload.get('title')}' is open for bidding.",
    )


@best_effort
def on_rfq_suppliers_invited(payload: dict, notifier: NotificationService) -> None:
    _notify_supplier_companies(
        notifier,
        payload,
        TYPE_RFQ_INVITATION,
        "RFQ Invitation",
        f"You have been invited to bid on RFQ '{payload.get('title')}'.",
    )


@best_effort
def on_rfq_awarded(payload: dict, notifier: NotificationService) -> None:
    supplier_id = payload.get("awarded_supplier_id")
    if not supplier_id:
        return
    metadata = payload.get("metadata") or {}
    notifier.notify_company(
        supplier_id,
        TYPE_BID_AWARDED,
        "Bid Awarded",
        f"Congratulations! Your bid for RFQ '{payload.get('title')}' has been awarded.",
        related_user_id=payload.get("created_by"),
        related_entity_id=metadata.get("bid_id") or payload["rfq_id"],
        related_entity_type="bid" if metadata.get("bid_id") else "rfq",
        data={
            "rfq_id": payload["rfq_id"],
            "reference_number": payload.get("reference_number"),
            "title": payload.get("title"),
            "bid_id": metadata.get("bid_id"),
        },
    )


@best_effort
def on_rfq_cancelled(payload: dict, notifier: NotificationService) -> None:
    _notify_supplier_companies(
        notifier,
        payload,
        TYPE_RFQ_CANCELLED,
        "RFQ Cancelled",
        f"RFQ '{payload.get('title')}' has been cancelled.",
    )


# ---------------------------------------------------------------------------
# Bids
# ---------------------------------------------------------------------------


def _bid_data(payload: dict) -> dict:
    return {
        "bid_id": payload["bid_id"],
        "bid_number": payload.get("bid_number"),
        "rfq_id": payload.get("rfq_id"),
        "rfq_title": payload.get("rfq_title"),
        "total_amount": payload.get("total_amount"),
        "currency": payload.get("currency"),
    }


@best_effort
def on_bid_submitted(payload: dict, notifier: NotificationService) -> None:
    notifier.create_notification(
        TYPE_BID_SUBMITTED,
        "New Bid Submitted",
        f"Bid {payload.get('bid_number')} was submitted for RFQ '{payload.get('rfq_title')}'.",
        payload["buyer_user_id"],
        related_user_id=payload.get("supplier_user_id"),
        related_entity_id=payload["bid_id"],
        related_entity_type="bid",
        data={**_bid_data(payload), "late": payload.get("late", False)},
    )


@best_effort
def on_bid_status_changed(payload: dict, notifier: NotificationService) -> None:
    to_status = payload.get("to_status")
    rfq_title = payload.get("rfq_title")
    common = {
        "related_entity_id": payload["bid_id"],
        "related_entity_type": "bid",
        "data": _bid_data(payload),
    }
    # Awards are announced from rfq.awarded, which both award paths emit
    if to_status == "rejected":
        reason = payload.get("reason")
        notifier.notify_company(
            payload["supplier_company_id"],
            TYPE_BID_REJECTED,
            "Bid Not Selected",
            f"Your bid for RFQ '{rfq_title}' was not selected."
            + (f" Reason: {reason}" if reason else ""),
            related_user_id=payload.get("buyer_user_id"),
            **common,
        )
    elif to_status == "withdrawn":
        notifier.create_notification(
            TYPE_BID_WITHDRAWN,
            "Bid Withdrawn",
            f"Bid {payload.get('bid_number')} on RFQ '{rfq_title}' was withdrawn.",
            payload["buyer_user_id"],
            related_user_id=payload.get("supplier_user_id"),
            **common,
        )


# ---------------------------------------------------------------------------
# Negotiations
# ---------------------------------------------------------------------------


@best_effort
def on_negotiation_started(payload: dict, notifier: NotificationService) -> None:
    notifier.create_notification(
        TYPE_NEGOTIATION_STARTED,
        "Negotiation Started",
        f"The buyer opened a negotiation on bid {payload.get('bid_number')}: "
        f"{payload.get('message_preview', '')}",
        payload["recipient_id"],
        related_user_id=payload.get("buyer_user_id"),
        related_entity_id=payload["negotiation_id"],
        related_entity_type="negotiation",
        data={
            "negotiation_id": payload["negotiation_id"],
            "bid_id": payload.get("bid_id"),
            "bid_number": payload.get("bid_number"),
            "rfq_title": payload.get("rfq_title"),
        },
    )


@best_effort
def on_negotiation_message_sent(payload: dict, notifier: NotificationService) -> None:
    broadcaster.publish(
        negotiation_channel(payload["negotiation_id"]),
        BROADCAST_MESSAGE_SENT,
        {
            "id": payload.get("message_id"),
            "negotiation_id": payload["negotiation_id"],
            "sender_id": payload.get("sender_id"),
            "sender_name": payload.get("sender_name"),
            "message": payload.get("message_preview"),
            "message_type": payload.get("message_type"),
            "offer_data": payload.get("offer_data"),
            "offer_status": payload.get("offer_status"),
            "created_at": payload.get("sent_at"),
        },
    )
    notifier.create_notification(
        TYPE_NEGOTIATION_MESSAGE,
        f"New message from {payload.get('sender_name')}",
        payload.get("message_preview") or "",
        payload["recipient_id"],
        related_user_id=payload.get("sender_id"),
        related_entity_id=payload["negotiation_id"],
        related_entity_type="negotiation",
        data={
            "negotiation_id": payload["negotiation_id"],
            "message_id": payload.get("message_id"),
            "message_type": payload.get("message_type"),
        },
    )


@best_effort
def on_negotiation_status_changed(payload: dict, notifier: NotificationService) -> None:
    broadcaster.publish(
        negotiation_channel(payload["negotiation_id"]),
        BROADCAST_STATUS_CHANGED,
        {
            "negotiation_id": payload["negotiation_id"],
            "old_status": payload.get("from_status"),
            "new_status": payload.get("to_status"),
            "changed_by": payload.get("changed_by"),
        },
    )
    changed_by = payload.get("changed_by")
    recipients = [
        user_id
        for user_id in (payload.get("buyer_user_id"), payload.get("supplier_user_id"))
        if user_id and user_id != changed_by
    ]
    for user_id in recipients:
        notifier.create_notification(
            TYPE_NEGOTIATION_STATUS_CHANGED,
            "Negotiation Updated",
            f"The negotiation is now {payload.get('to_status')}.",
            user_id,
            related_user_id=changed_by,
            related_entity_id=payload["negotiation_id"],
            related_entity_type="negotiation",
            data={
                "negotiation_id": payload["negotiation_id"],
                "from_status": payload.get("from_status"),
                "to_status": payload.get("to_status"),
                "reason": payload.get("reason"),
            },
        )


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------


def _po_data(payload: dict) -> dict:
    return {
        "purchase_order_id": payload["purchase_order_id"],
        "po_number": payload.get("po_number"),
        "total_amount": payload.get("total_amount"),
        "currency": payload.get("currency"),
    }


@best_effort
def on_po_created(payload: dict, notifier: NotificationService) -> None:
    notifier.notify_company(
        payload["supplier_company_id"],
        TYPE_PO_CREATED,
        "New Purchase Order",
        f"Purchase order {payload.get('po_number')} has been issued for your awarded bid "
        f"on '{payload.get('rfq_title') or 'N/A'}'.",
        related_user_id=payload.get("buyer_user_id"),
        related_entity_id=payload["purchase_order_id"],
        related_entity_type="purchase_order",
        data={**_po_data(payload), "rfq_title": payload.get("rfq_title")},
    )


@best_effort
def on_po_status_changed(payload: dict, notifier: NotificationService) -> None:
    to_status = payload.get("to_status")
    po_number = payload.get("po_number")
    common = {
        "related_entity_id": payload["purchase_order_id"],
        "related_entity_type": "purchase_order",
        "data": {
            **_po_data(payload),
            "status": to_status,
            "status_label": payload.get("status_label"),
        },
    }
    buyer_message = PO_BUYER_STATUS_MESSAGES.get(to_status)
    if buyer_message and payload.get("buyer_user_id") != payload.get("actor_id"):
        notifier.create_notification(
            TYPE_PO_STATUS_CHANGED,
            "PO Status Update",
            f"Purchase order {po_number} {buyer_message}.",
            payload["buyer_user_id"],
            related_user_id=payload.get("actor_id"),
            **common,
        )
    supplier_message = PO_SUPPLIER_STATUS_MESSAGES.get(to_status)
    if supplier_message:
        notifier.notify_company(
            payload["supplier_company_id"],
            TYPE_PO_STATUS_CHANGED,
            "PO Status Update",
            f"Purchase order {po_number} {supplier_message}.",
            exclude_user_id=payload.get("actor_id"),
            related_user_id=payload.get("actor_id"),
            **common,
        )


@best_effort
def on_po_modification_requested(payload: dict, notifier: NotificationService) -> None:
    requested_by = payload.get("requested_by")
    title = "Purchase Order Change Requested"
    message = (
        f"A change to {payload.get('field_name')} on purchase order "
        f"{payload.get('po_number')} is waiting for approval."
    )
    common = {
        "related_user_id": requested_by,
        "related_entity_id": payload["purchase_order_id"],
        "related_entity_type": "purchase_order",
        "data": {
            **_po_data(payload),
            "modification_id": payload.get("modification_id"),
            "field_name": payload.get("field_name"),
            "old_value": payload.get("old_value"),
            "new_value": payload.get("new_value"),
        },
    }
    if payload.get("buyer_user_id") != requested_by:
        notifier.create_notification(
            TYPE_PO_MODIFICATION_REQUESTED, title, message, payload["buyer_user_id"], **common
        )
    else:
        notifier.notify_company(
            payload["supplier_company_id"],
            TYPE_PO_MODIFICATION_REQUESTED,
            title,
            message,
            **common,
        )


@best_effort
def on_po_modification_resolved(payload: dict, notifier: NotificationService) -> None:
    resolution = payload.get("resolution")
    notifier.create_notification(
        TYPE_PO_MODIFICATION_RESOLVED,
        "Purchase Order Change " + str(resolution).title(),
        f"Your change to {payload.get('field_name')} on purchase order "
        f"{payload.get('po_number')} was {resolution}.",
        payload["modified_by"],
        related_entity_id=payload["purchase_order_id"],
        related_entity_type="purchase_order",
        data={
            **_po_data(payload),
            "modification_id": payload.get("modification_id"),
            "resolution": resolution,
            "notes": payload.get("notes"),
        },
    )


SUBSCRIPTIONS = {
    EVENT_RFQ_BIDDING_OPENED: [on_rfq_bidding_opened],
    EVENT_RFQ_SUPPLIERS_INVITED: [on_rfq_suppliers_invited],
    EVENT_RFQ_AWARDED: [on_rfq_awarded],
    EVENT_RFQ_CANCELLED: [on_rfq_cancelled],
    EVENT_BID_SUBMITTED: [on_bid_submitted],
    EVENT_BID_STATUS_CHANGED: [on_bid_status_changed],
    EVENT_NEGOTIATION_STARTED: [on_negotiation_started],
    EVENT_NEGOTIATION_MESSAGE_SENT: [on_negotiation_message_sent],
    EVENT_NEGOTIATION_STATUS_CHANGED: [on_negotiation_status_changed],
    EVENT_PO_CREATED: [on_po_created],
    EVENT_PO_STATUS_CHANGED: [on_po_status_changed],
    EVENT_PO_MODIFICATION_REQUESTED: [on_po_modification_requested],
    EVENT_PO_MODIFICATION_RESOLVED: [on_po_modification_resolved],
}


def register_handlers() -> None:
    for event_type, handlers in SUBSCRIPTIONS.items():
        for handler in handlers:
            EventHandlerRegistry.register(event_type, handler)
