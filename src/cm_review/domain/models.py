"""Domain model for cm_review — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Review:
    id: int                 # BIGSERIAL
    order_id: str
    reviewer_id: str        # always the order's buyer
    reviewee_id: str        # the seller or the rider of the order
    review_type: str        # ReviewType value
    rating: int             # 1..5
    comment: str | None = None
    created_at: datetime | None = None
