"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    RIDER = "RIDER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    PICKED_UP = "PICKED_UP"
    ON_THE_WAY = "ON_THE_WAY"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"


class LedgerEntryType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    ESCROW = "ESCROW"
    WITHDRAWAL = "WITHDRAWAL"


class LedgerPool(str, Enum):
    """Which balance a ledger row moved. EXTERNAL rows record gateway money."""
    PENDING = "PENDING"
    AVAILABLE = "AVAILABLE"
    EXTERNAL = "EXTERNAL"


class EscrowStatus(str, Enum):
    HELD = "HELD"
    RELEASED = "RELEASED"
    REVERSED = "REVERSED"


class TrustLevel(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    VERIFIED = "VERIFIED"


class DisputeStatus(str, Enum):
    OPEN = "OPEN"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED_BUYER_FAVOR = "RESOLVED_BUYER_FAVOR"
    RESOLVED_SELLER_FAVOR = "RESOLVED_SELLER_FAVOR"
    RESOLVED_COMPROMISE = "RESOLVED_COMPROMISE"
    DISMISSED = "DISMISSED"


UNRESOLVED_DISPUTE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW)


class SenderType(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class PenaltyAction(str, Enum):
    WARNING = "WARNING"
    TEMP_BAN_1DAY = "TEMP_BAN_1DAY"
    TEMP_BAN_3DAYS = "TEMP_BAN_3DAYS"
    TEMP_BAN_7DAYS = "TEMP_BAN_7DAYS"
    TEMP_BAN_30DAYS = "TEMP_BAN_30DAYS"
    PERMANENT_BAN = "PERMANENT_BAN"
    TRUST_LEVEL_DOWNGRADE = "TRUST_LEVEL_DOWNGRADE"


class PostReleaseRefundPolicy(str, Enum):
    CLAWBACK = "CLAWBACK"
    REJECT = "REJECT"


class NotificationKind(str, Enum):
    NEW_ORDER = "NEW_ORDER"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    DELIVERY_UPDATE = "DELIVERY_UPDATE"
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    DISPUTE_OPENED = "DISPUTE_OPENED"
    DISPUTE_MESSAGE = "DISPUTE_MESSAGE"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    PENALTY_ISSUED = "PENALTY_ISSUED"
    WITHDRAWAL = "WITHDRAWAL"
    REVIEW_RECEIVED = "REVIEW_RECEIVED"
    REPORT_RESOLVED = "REPORT_RESOLVED"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"   # debited, transfer outcome not yet known
    SENT = "SENT"
    FAILED = "FAILED"     # refunded to available balance


class ReviewType(str, Enum):
    SELLER = "SELLER"
    RIDER = "RIDER"


class ReportType(str, Enum):
    USER = "USER"
    PRODUCT = "PRODUCT"
    ORDER = "ORDER"
    RIDER = "RIDER"


class ReportStatus(str, Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


OPEN_REPORT_STATUSES = (ReportStatus.PENDING, ReportStatus.UNDER_REVIEW)


class ReportAction(str, Enum):
    """What the admin decided; the penalty issued follows from it."""
    WARNING = "WARNING"
    SUSPEND = "SUSPEND"
    BAN = "BAN"
