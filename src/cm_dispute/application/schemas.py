"""Pydantic request/response schemas for cm_dispute."""

from typing import Literal

from pydantic import BaseModel, Field

from src.cm_common.datetime_utils import isoformat_or_none
from src.cm_dispute.domain.models import Dispute, DisputeMessage, Penalty, Report

ResolutionStatus = Literal[
    "RESOLVED_BUYER_FAVOR", "RESOLVED_SELLER_FAVOR", "RESOLVED_COMPROMISE", "DISMISSED"
]


class OpenDisputeRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=2000)
    evidence: list[str] = Field(default_factory=list, max_length=10)


class DisputeMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    attachments: list[str] = Field(default_factory=list, max_length=10)
    seller_evidence: list[str] = Field(default_factory=list, max_length=10)


class ResolveDisputeRequest(BaseModel):
    status: ResolutionStatus
    resolution: str = Field(..., min_length=1, max_length=2000)
    refund_amount: int = Field(0, ge=0, description="Refund to the buyer in kobo")
    penalize_buyer: bool = False
    penalize_seller: bool = False
    penalty_reason: str = Field("", max_length=500)


class IssuePenaltyRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    action: Literal[
        "WARNING",
        "TEMP_BAN_1DAY",
        "TEMP_BAN_3DAYS",
        "TEMP_BAN_7DAYS",
        "TEMP_BAN_30DAYS",
        "PERMANENT_BAN",
        "TRUST_LEVEL_DOWNGRADE",
    ]
    reason: str = Field(..., min_length=1, max_length=500)
    dispute_id: str | None = Field(None, max_length=64)


class CreateReportRequest(BaseModel):
    report_type: Literal["USER", "PRODUCT", "ORDER", "RIDER"]
    reason: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    evidence: list[str] = Field(default_factory=list, max_length=10)
    reported_user_id: str | None = Field(None, max_length=64)
    reported_product_id: str | None = Field(None, max_length=64)
    reported_order_id: str | None = Field(None, max_length=64)


class ResolveReportRequest(BaseModel):
    status: Literal["RESOLVED", "DISMISSED"]
    action: Literal["WARNING", "SUSPEND", "BAN"] | None = None
    admin_notes: str = Field(..., min_length=1, max_length=2000)
    penalize_reported: bool = False
    penalty_reason: str = Field("", max_length=500)


class DisputeResponse(BaseModel):
    id: str
    order_id: str
    buyer_id: str
    seller_id: str
    reason: str
    status: str
    buyer_evidence: list[str]
    seller_evidence: list[str]
    resolution: str | None
    refund_amount: int
    resolved_at: str | None
    resolved_by: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, d: Dispute) -> "DisputeResponse":
        return cls(
            id=d.id,
            order_id=d.order_id,
            buyer_id=d.buyer_id,
            seller_id=d.seller_id,
            reason=d.reason,
            status=d.status,
            buyer_evidence=d.buyer_evidence,
            seller_evidence=d.seller_evidence,
            resolution=d.resolution,
            refund_amount=d.refund_amount,
            resolved_at=isoformat_or_none(d.resolved_at),
            resolved_by=d.resolved_by,
            created_at=isoformat_or_none(d.created_at),
        )


class DisputeMessageResponse(BaseModel):
    id: int
    dispute_id: str
    sender_id: str
    sender_type: str
    message: str
    attachments: list[str]
    created_at: str | None

    @classmethod
    def from_domain(cls, m: DisputeMessage) -> "DisputeMessageResponse":
        return cls(
            id=m.id,
            dispute_id=m.dispute_id,
            sender_id=m.sender_id,
            sender_type=m.sender_type,
            message=m.message,
            attachments=m.attachments,
            created_at=isoformat_or_none(m.created_at),
        )


class PenaltyResponse(BaseModel):
    id: int
    user_id: str
    action: str
    reason: str
    points_added: int
    issued_by: str
    banned_until: str | None
    dispute_id: str | None
    report_id: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, p: Penalty) -> "PenaltyResponse":
        return cls(
            id=p.id,
            user_id=p.user_id,
            action=p.action,
            reason=p.reason,
            points_added=p.points_added,
            issued_by=p.issued_by,
            banned_until=isoformat_or_none(p.banned_until),
            dispute_id=p.dispute_id,
            report_id=p.report_id,
            created_at=isoformat_or_none(p.created_at),
        )


class ReportResponse(BaseModel):
    id: str
    reporter_id: str
    report_type: str
    reason: str
    description: str | None
    evidence: list[str]
    reported_user_id: str | None
    reported_product_id: str | None
    reported_order_id: str | None
    status: str
    action: str | None
    admin_notes: str | None
    resolved_by: str | None
    resolved_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, r: Report) -> "ReportResponse":
        return cls(
            id=r.id,
            reporter_id=r.reporter_id,
            report_type=r.report_type,
            reason=r.reason,
            description=r.description,
            evidence=r.evidence,
            reported_user_id=r.reported_user_id,
            reported_product_id=r.reported_product_id,
            reported_order_id=r.reported_order_id,
            status=r.status,
            action=r.action,
            admin_notes=r.admin_notes,
            resolved_by=r.resolved_by,
            resolved_at=isoformat_or_none(r.resolved_at),
            created_at=isoformat_or_none(r.created_at),
        )
