"""Domain models for cm_dispute — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.cm_common.enums import (
    OPEN_REPORT_STATUSES,
    UNRESOLVED_DISPUTE_STATUSES,
    DisputeStatus,
    ReportStatus,
)


@dataclass
class Dispute:
    id: str
    order_id: str                # UNIQUE: one dispute per order, ever
    buyer_id: str
    seller_id: str
    reason: str
    status: str = DisputeStatus.OPEN.value
    buyer_evidence: list[str] = field(default_factory=list)    # URLs
    seller_evidence: list[str] = field(default_factory=list)   # URLs
    resolution: str | None = None
    refund_amount: int = 0       # kobo
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status not in UNRESOLVED_DISPUTE_STATUSES

    def involves(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


@dataclass
class DisputeMessage:
    id: int                      # BIGSERIAL
    dispute_id: str
    sender_id: str
    sender_type: str             # SenderType value
    message: str
    attachments: list[str] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass
class Penalty:
    id: int                      # BIGSERIAL
    user_id: str
    action: str                  # PenaltyAction value
    reason: str
    points_added: int
    issued_by: str
    banned_until: datetime | None = None
    dispute_id: str | None = None
    report_id: str | None = None
    created_at: datetime | None = None


@dataclass
class Report:
    id: str
    reporter_id: str
    report_type: str             # ReportType value
    reason: str
    reported_user_id: str | None = None     # derived from the product/order when omitted
    reported_product_id: str | None = None
    reported_order_id: str | None = None
    description: str | None = None
    evidence: list[str] = field(default_factory=list)    # URLs
    status: str = ReportStatus.PENDING.value
    action: str | None = None    # ReportAction value, set on resolution
    admin_notes: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.status not in OPEN_REPORT_STATUSES
