# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.bid import Bid
from src.models.bid_item import BidItem
from src.models.company import Company
from src.models.document_sequence import DocumentSequence
from src.models.enums import (
    BidStatus,
    CompanyType,
    EventStatus,
    InvitationStatus,
    LateBidPolicy,
    MessageType,
    ModificationStatus,
    NegotiationStatus,
    OfferStatus,
    PurchaseOrderStatus,
    RfqStatus,
    UserRole,
)
from src.models.event_outbox import EventOutbox
from src.models.negotiation import Negotiation
from src.models.negotiation_message import NegotiationMessage
from src.models.notification import Notification
from src.models.processed_event import ProcessedEvent
from src.models.purchase_order import PurchaseOrder
from src.models.purchase_order_item import PurchaseOrderItem
from src.models.purchase_order_modification import PurchaseOrderModification
from src.models.purchase_order_status_history import PurchaseOrderStatusHistory
from src.models.rfq import Rfq
from src.models.rfq_invitation import RfqInvitation
from src.models.rfq_item import RfqItem
from src.models.rfq_status_history import RfqStatusHistory
from src.models.user import User

__all__ = [
    "Bid",
    "BidItem",
    "BidStatus",
    "Company",
    "CompanyType",
    "DocumentSequence",
    "EventOutbox",
    "EventStatus",
    "InvitationStatus",
    "LateBidPolicy",
    "MessageType",
    "ModificationStatus",
    "Negotiation",
    "NegotiationMessage",
    "NegotiationStatus",
    "Notification",
    "OfferStatus",
    "ProcessedEvent",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderModification",
    "PurchaseOrderStatus",
    "PurchaseOrderStatusHistory",
    "Rfq",
    "RfqInvitation",
    "RfqItem",
    "RfqStatus",
    "RfqStatusHistory",
    "User",
    "UserRole",
]
