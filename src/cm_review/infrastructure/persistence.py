"""ReviewRepository — raw SQL over AsyncSession.

The UNIQUE (order_id, review_type) constraint is the duplicate guard:
ON CONFLICT DO NOTHING returns no row and the service maps that to 409.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_review.domain.models import Review

_COLUMNS = "id, order_id, reviewer_id, reviewee_id, review_type, rating, comment, created_at"

_INSERT_SQL = text(f"""
    INSERT INTO reviews (order_id, reviewer_id, reviewee_id, review_type, rating, comment)
    VALUES (:order_id, :reviewer_id, :reviewee_id, :review_type, :rating, :comment)
    ON CONFLICT ON CONSTRAINT uq_reviews_order_type DO NOTHING
    RETURNING {_COLUMNS}
""")

_STATS_SQL = text("""
    SELECT COALESCE(AVG(rating), 0) AS avg_rating, COUNT(*) AS total_reviews
    FROM reviews
    WHERE reviewee_id = :reviewee_id
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM reviews
    WHERE reviewee_id = :reviewee_id
      AND (CAST(:review_type AS TEXT) IS NULL OR review_type = :review_type)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_FOR_ORDER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM reviews
    WHERE order_id = :order_id
    ORDER BY id
""")


def _row_to_review(row: Any) -> Review:
    return Review(
        id=row.id,
        order_id=row.order_id,
        reviewer_id=row.reviewer_id,
        reviewee_id=row.reviewee_id,
        review_type=row.review_type,
        rating=row.rating,
        comment=row.comment,
        created_at=row.created_at,
    )


class ReviewRepository:
    async def insert(self, db: AsyncSession, review: Review) -> Review | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "order_id": review.order_id,
                "reviewer_id": review.reviewer_id,
                "reviewee_id": review.reviewee_id,
                "review_type": review.review_type,
                "rating": review.rating,
                "comment": review.comment,
            },
        )
        row = result.fetchone()
        return _row_to_review(row) if row else None

    async def rating_stats(self, db: AsyncSession, reviewee_id: str) -> tuple[float, int]:
        row = (await db.execute(_STATS_SQL, {"reviewee_id": reviewee_id})).one()
        return float(row.avg_rating), int(row.total_reviews)

    async def list_for_user(
        self, db: AsyncSession, reviewee_id: str, review_type: str | None, limit: int
    ) -> list[Review]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {"reviewee_id": reviewee_id, "review_type": review_type, "limit": limit},
        )
        return [_row_to_review(row) for row in result.fetchall()]

    async def list_for_order(self, db: AsyncSession, order_id: str) -> list[Review]:
        result = await db.execute(_LIST_FOR_ORDER_SQL, {"order_id": order_id})
        return [_row_to_review(row) for row in result.fetchall()]
