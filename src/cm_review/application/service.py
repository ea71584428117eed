"""ReviewService — buyers rate the seller and the rider of a completed order.

Submitting a review is one transaction under the reviewee's account lock: the
review row, the recomputed rating aggregate and the trust level derived from
it commit together. Trust always goes through compute_trust_level, so earned
downgrade penalties keep applying on top of the new rating.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.domain.trust import compute_trust_level
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_common.actor import Actor
from src.cm_common.enums import NotificationKind, OrderStatus, ReviewType
from src.cm_common.errors import (
    AlreadyReviewedError,
    NotYourOrderError,
    OrderNotFoundError,
    ReviewNotAllowedError,
)
from src.cm_notification.application.service import NotificationService
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_review.application.schemas import ReviewResponse, SubmitReviewResponse
from src.cm_review.domain.models import Review
from src.cm_review.domain.repository import ReviewRepositoryProtocol
from src.cm_review.infrastructure.persistence import ReviewRepository

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(
        self,
        repo: ReviewRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._repo: ReviewRepositoryProtocol = repo or ReviewRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._notifier = notifier or NotificationService()

    async def submit_review(
        self,
        db: AsyncSession,
        actor: Actor,
        order_id: str,
        review_type: str,
        rating: int,
        comment: str | None,
    ) -> SubmitReviewResponse:
        kind = ReviewType(review_type)
        if not 1 <= rating <= 5:
            raise ReviewNotAllowedError(f"rating must be between 1 and 5, got {rating}")

        try:
            order = await self._orders.get_by_id(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.buyer_id != actor.user_id:
                raise NotYourOrderError(order_id)
            if order.status != OrderStatus.COMPLETED:
                raise ReviewNotAllowedError(f"order {order_id} is {order.status}, not COMPLETED")
            reviewee_id = order.seller_id if kind == ReviewType.SELLER else order.rider_id
            if reviewee_id is None:
                raise ReviewNotAllowedError(f"order {order_id} has no rider")

            # Serializes concurrent reviews of one user so the aggregate is exact
            account = await self._accounts.lock_account(db, reviewee_id)
            review = await self._repo.insert(
                db,
                Review(
                    id=0,
                    order_id=order.id,
                    reviewer_id=actor.user_id,
                    reviewee_id=reviewee_id,
                    review_type=kind.value,
                    rating=rating,
                    comment=comment,
                ),
            )
            if review is None:
                raise AlreadyReviewedError(order_id, kind.value)

            avg_rating, total_reviews = await self._repo.rating_stats(db, reviewee_id)
            account = await self._accounts.save_rating_stats(
                db, reviewee_id, avg_rating, total_reviews
            )
            level = compute_trust_level(
                account.avg_rating, account.total_reviews, account.trust_downgrades
            )
            if level.value != account.trust_level:
                account = await self._accounts.save_trust(
                    db, reviewee_id, level.value, account.trust_downgrades
                )
            await self._notifier.notify(
                db,
                reviewee_id,
                NotificationKind.REVIEW_RECEIVED,
                "New review",
                f"You received {rating} star(s) for order {order.order_number}.",
                order_id=order.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Review of %s %s on order %s: rating=%d avg=%.2f trust=%s",
            kind.value, reviewee_id, order_id, rating, account.avg_rating, account.trust_level,
        )
        return SubmitReviewResponse(
            review=ReviewResponse.from_domain(review),
            avg_rating=account.avg_rating,
            total_reviews=account.total_reviews,
            trust_level=account.trust_level,
        )

    async def list_reviews(
        self, db: AsyncSession, user_id: str, review_type: str | None, limit: int
    ) -> list[ReviewResponse]:
        kind = ReviewType(review_type).value if review_type else None
        rows = await self._repo.list_for_user(db, user_id, kind, limit)
        return [ReviewResponse.from_domain(r) for r in rows]

    async def list_order_reviews(
        self, db: AsyncSession, actor: Actor, order_id: str
    ) -> list[ReviewResponse]:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        participants = {order.buyer_id, order.seller_id, order.rider_id}
        if actor.user_id not in participants and not actor.is_admin:
            raise NotYourOrderError(order_id)
        rows = await self._repo.list_for_order(db, order_id)
        return [ReviewResponse.from_domain(r) for r in rows]
