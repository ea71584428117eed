"""Repository Protocol for reviews. Mutating methods never commit."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_review.domain.models import Review


class ReviewRepositoryProtocol(Protocol):
    # None when the order already has a review of this type
    async def insert(self, db: AsyncSession, review: Review) -> Review | None: ...

    async def rating_stats(self, db: AsyncSession, reviewee_id: str) -> tuple[float, int]: ...

    async def list_for_user(
        self, db: AsyncSession, reviewee_id: str, review_type: str | None, limit: int
    ) -> list[Review]: ...

    async def list_for_order(self, db: AsyncSession, order_id: str) -> list[Review]: ...
