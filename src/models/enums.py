import enum


class CompanyType(str, enum.Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    BOTH = "both"


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class RfqStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    BIDDING_OPEN = "bidding_open"
    BIDDING_CLOSED = "bidding_closed"
    UNDER_EVALUATION = "under_evaluation"
    AWARDED = "awarded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvitationStatus(str, enum.Enum):
    INVITED = "invited"
    VIEWED = "viewed"
    SUBMITTED = "submitted"
    DECLINED = "declined"


class BidStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    AWARDED = "awarded"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class NegotiationStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class MessageType(str, enum.Enum):
    TEXT = "text"
    COUNTER_OFFER = "counter_offer"
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"


class OfferStatus(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    SENT_TO_SUPPLIER = "sent_to_supplier"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class ModificationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LateBidPolicy(str, enum.Enum):
    ALLOW = "allow"
    REJECT = "reject"


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
