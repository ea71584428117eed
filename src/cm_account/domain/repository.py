"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory implementation that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Every mutating method runs inside the caller's transaction and never commits.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.models import Account, LedgerEntry, Withdrawal


class AccountRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None: ...

    async def lock_account(self, db: AsyncSession, user_id: str) -> Account: ...

    async def apply_delta(
        self,
        db: AsyncSession,
        user_id: str,
        pool: str,
        amount: int,
        entry_type: str,
        reference: str,
        description: str,
        order_id: str | None = None,
        escrow_status: str | None = None,
    ) -> tuple[Account, LedgerEntry]: ...

    async def record_external_entry(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        reference: str,
        description: str,
        order_id: str | None = None,
    ) -> LedgerEntry: ...

    async def move_pending_to_available(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reference: str,
        description: str,
        order_id: str,
    ) -> tuple[Account, LedgerEntry]: ...

    async def settle_escrow_holds(
        self, db: AsyncSession, user_id: str, order_id: str, new_status: str
    ) -> tuple[int, int]: ...

    async def increment_completed_orders(
        self, db: AsyncSession, user_ids: list[str]
    ) -> None: ...

    async def add_penalty(
        self,
        db: AsyncSession,
        user_id: str,
        points: int,
        is_warning: bool,
        suspended_until: datetime | None,
    ) -> Account: ...

    async def suspend(
        self, db: AsyncSession, user_id: str, suspended_until: datetime
    ) -> Account: ...

    async def save_trust(
        self, db: AsyncSession, user_id: str, trust_level: str, trust_downgrades: int
    ) -> Account: ...

    async def save_rating_stats(
        self, db: AsyncSession, user_id: str, avg_rating: float, total_reviews: int
    ) -> Account: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...


class WithdrawalRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal: ...

    async def get_by_reference(self, db: AsyncSession, reference: str) -> Withdrawal | None: ...

    async def get_by_key(
        self, db: AsyncSession, user_id: str, idempotency_key: str
    ) -> Withdrawal | None: ...

    # mark_* are compare-and-set on status = PENDING; None means already settled
    async def mark_sent(
        self, db: AsyncSession, reference: str, transfer_code: str, transfer_status: str
    ) -> Withdrawal | None: ...

    async def mark_failed(
        self, db: AsyncSession, reference: str, reason: str
    ) -> Withdrawal | None: ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[Withdrawal]: ...
