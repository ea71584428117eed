"""SQLAlchemy ORM mapping for reviews (migration 011)."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, SmallInteger, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.cm_common.database import Base


class ReviewORM(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("order_id", "review_type", name="uq_reviews_order_type"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reviewer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reviewee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    review_type: Mapped[str] = mapped_column(String(10), nullable=False)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
