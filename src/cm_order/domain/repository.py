"""Order repository Protocol.

Every state-changing method is a compare-and-set: it names the state it
expects to find and returns None when another request got there first.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, order: Order) -> Order: ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def get_for_update(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def get_by_payment_reference(
        self, db: AsyncSession, reference: str
    ) -> Order | None: ...

    async def mark_paid(
        self, db: AsyncSession, order_id: str, reference: str
    ) -> Order | None: ...

    async def assign_rider(
        self, db: AsyncSession, order_id: str, rider_id: str
    ) -> Order | None: ...

    async def advance_status(
        self,
        db: AsyncSession,
        order_id: str,
        rider_id: str,
        from_status: str,
        to_status: str,
    ) -> Order | None: ...

    async def mark_completed(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def set_disputed(
        self, db: AsyncSession, order_id: str, is_disputed: bool
    ) -> Order | None: ...

    async def add_refund(
        self, db: AsyncSession, order_id: str, amount: int
    ) -> Order | None: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        as_role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]: ...

    async def list_available(self, db: AsyncSession, limit: int) -> list[Order]: ...
