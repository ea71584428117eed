"""Pydantic request/response schemas for cm_review."""

from typing import Literal

from pydantic import BaseModel, Field

from src.cm_common.datetime_utils import isoformat_or_none
from src.cm_review.domain.models import Review


class SubmitReviewRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)
    review_type: Literal["SELLER", "RIDER"]
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class ReviewResponse(BaseModel):
    id: int
    order_id: str
    reviewer_id: str
    reviewee_id: str
    review_type: str
    rating: int
    comment: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, r: Review) -> "ReviewResponse":
        return cls(
            id=r.id,
            order_id=r.order_id,
            reviewer_id=r.reviewer_id,
            reviewee_id=r.reviewee_id,
            review_type=r.review_type,
            rating=r.rating,
            comment=r.comment,
            created_at=isoformat_or_none(r.created_at),
        )


class SubmitReviewResponse(BaseModel):
    review: ReviewResponse
    # The reviewee's standing after this review was counted
    avg_rating: float
    total_reviews: int
    trust_level: str
