"""AccountRepository and WithdrawalRepository, raw SQL over AsyncSession.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING with
the non-negativity guard in the WHERE clause. A result of 0 rows means the
guard rejected the change (insufficient funds) or the account does not exist.
Every balance change writes exactly one ledger row in the same statement batch.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.models import Account, LedgerEntry, Withdrawal
from src.cm_common.enums import EscrowStatus, LedgerEntryType, LedgerPool
from src.cm_common.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InternalError,
)

_ACCOUNT_COLUMNS = """
    user_id, pending_balance, available_balance,
    penalty_points, warning_count, last_warning_at,
    trust_level, trust_downgrades, avg_rating, total_reviews, completed_orders,
    is_suspended, suspended_until, version, created_at, updated_at
"""

_LEDGER_COLUMNS = """
    id, user_id, entry_type, pool, amount, balance_before, balance_after,
    reference, order_id, escrow_status, description, created_at
"""

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
""")

_LOCK_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
    FOR UPDATE
""")

_APPLY_AVAILABLE_SQL = text(f"""
    UPDATE accounts
    SET available_balance = available_balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND available_balance + :amount >= 0
    RETURNING {_ACCOUNT_COLUMNS}
""")

_APPLY_PENDING_SQL = text(f"""
    UPDATE accounts
    SET pending_balance = pending_balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND pending_balance + :amount >= 0
    RETURNING {_ACCOUNT_COLUMNS}
""")

_PENDING_TO_AVAILABLE_SQL = text(f"""
    UPDATE accounts
    SET pending_balance   = pending_balance   - :amount,
        available_balance = available_balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND pending_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_INCREMENT_COMPLETED_SQL = text("""
    UPDATE accounts
    SET completed_orders = completed_orders + 1,
        updated_at = NOW()
    WHERE user_id = ANY(:user_ids)
""")

_ADD_PENALTY_SQL = text(f"""
    UPDATE accounts
    SET penalty_points  = penalty_points + :points,
        warning_count   = warning_count + CASE WHEN :is_warning THEN 1 ELSE 0 END,
        last_warning_at = CASE WHEN :is_warning THEN NOW() ELSE last_warning_at END,
        is_suspended    = is_suspended OR CAST(:suspended_until AS TIMESTAMPTZ) IS NOT NULL,
        suspended_until = GREATEST(suspended_until, CAST(:suspended_until AS TIMESTAMPTZ)),
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_SUSPEND_SQL = text(f"""
    UPDATE accounts
    SET is_suspended    = TRUE,
        suspended_until = GREATEST(suspended_until, CAST(:suspended_until AS TIMESTAMPTZ)),
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_SAVE_TRUST_SQL = text(f"""
    UPDATE accounts
    SET trust_level = :trust_level,
        trust_downgrades = :trust_downgrades,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_SAVE_RATING_SQL = text(f"""
    UPDATE accounts
    SET avg_rating = :avg_rating,
        total_reviews = :total_reviews,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: ledger_entries
# ---------------------------------------------------------------------------

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (user_id, entry_type, pool, amount, balance_before, balance_after,
         reference, order_id, escrow_status, description)
    VALUES
        (:user_id, :entry_type, :pool, :amount, :balance_before, :balance_after,
         :reference, :order_id, :escrow_status, :description)
    RETURNING {_LEDGER_COLUMNS}
""")

# The escrow_status tag is the only column of ledger_entries ever updated.
_SETTLE_HOLDS_SQL = text("""
    UPDATE ledger_entries
    SET escrow_status = :new_status
    WHERE user_id = :user_id
      AND order_id = :order_id
      AND entry_type = 'ESCROW'
      AND escrow_status = 'HELD'
    RETURNING amount
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = :entry_type)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> Account:
    return Account(
        user_id=row.user_id,  # type: ignore[attr-defined]
        pending_balance=row.pending_balance,  # type: ignore[attr-defined]
        available_balance=row.available_balance,  # type: ignore[attr-defined]
        penalty_points=row.penalty_points,  # type: ignore[attr-defined]
        warning_count=row.warning_count,  # type: ignore[attr-defined]
        last_warning_at=row.last_warning_at,  # type: ignore[attr-defined]
        trust_level=row.trust_level,  # type: ignore[attr-defined]
        trust_downgrades=row.trust_downgrades,  # type: ignore[attr-defined]
        avg_rating=float(row.avg_rating),  # type: ignore[attr-defined]
        total_reviews=row.total_reviews,  # type: ignore[attr-defined]
        completed_orders=row.completed_orders,  # type: ignore[attr-defined]
        is_suspended=row.is_suspended,  # type: ignore[attr-defined]
        suspended_until=row.suspended_until,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        pool=row.pool,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_before=row.balance_before,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference=row.reference,  # type: ignore[attr-defined]
        order_id=row.order_id,  # type: ignore[attr-defined]
        escrow_status=row.escrow_status,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Concrete repository — all balance operations atomic at the SQL level."""

    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock_account(self, db: AsyncSession, user_id: str) -> Account:
        """SELECT ... FOR UPDATE: serializes withdrawals and settlements per account."""
        result = await db.execute(_LOCK_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

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
    ) -> tuple[Account, LedgerEntry]:
        if pool == LedgerPool.AVAILABLE:
            sql = _APPLY_AVAILABLE_SQL
        elif pool == LedgerPool.PENDING:
            sql = _APPLY_PENDING_SQL
        else:
            raise InternalError(f"apply_delta cannot move the {pool} pool")

        result = await db.execute(sql, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, user_id)
            if current is None:
                raise AccountNotFoundError(user_id)
            if pool == LedgerPool.AVAILABLE:
                raise InsufficientBalanceError(-amount, current.available_balance)
            raise InternalError(
                f"Pending balance of {user_id} would go negative "
                f"({current.pending_balance} + {amount})"
            )

        account = _row_to_account(row)
        after = (
            account.available_balance if pool == LedgerPool.AVAILABLE
            else account.pending_balance
        )
        entry = await self._insert_ledger(
            db,
            user_id=user_id,
            entry_type=entry_type,
            pool=pool,
            amount=amount,
            balance_before=after - amount,
            balance_after=after,
            reference=reference,
            order_id=order_id,
            escrow_status=escrow_status,
            description=description,
        )
        return account, entry

    async def record_external_entry(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        reference: str,
        description: str,
        order_id: str | None = None,
    ) -> LedgerEntry:
        """Money that moved through the gateway; no balance pool changes."""
        account = await self.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return await self._insert_ledger(
            db,
            user_id=user_id,
            entry_type=entry_type,
            pool=LedgerPool.EXTERNAL,
            amount=amount,
            balance_before=account.available_balance,
            balance_after=account.available_balance,
            reference=reference,
            order_id=order_id,
            escrow_status=None,
            description=description,
        )

    async def move_pending_to_available(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reference: str,
        description: str,
        order_id: str,
    ) -> tuple[Account, LedgerEntry]:
        result = await db.execute(
            _PENDING_TO_AVAILABLE_SQL, {"user_id": user_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(
                f"Cannot release {amount} kobo from pending balance of {user_id}"
            )
        account = _row_to_account(row)
        entry = await self._insert_ledger(
            db,
            user_id=user_id,
            entry_type=LedgerEntryType.CREDIT,
            pool=LedgerPool.AVAILABLE,
            amount=amount,
            balance_before=account.available_balance - amount,
            balance_after=account.available_balance,
            reference=reference,
            order_id=order_id,
            escrow_status=None,
            description=description,
        )
        return account, entry

    async def settle_escrow_holds(
        self, db: AsyncSession, user_id: str, order_id: str, new_status: str
    ) -> tuple[int, int]:
        """Flip HELD escrow rows of (user, order); return (row count, net held amount)."""
        if new_status not in (EscrowStatus.RELEASED, EscrowStatus.REVERSED):
            raise InternalError(f"Escrow holds cannot move to {new_status}")
        result = await db.execute(
            _SETTLE_HOLDS_SQL,
            {"user_id": user_id, "order_id": order_id, "new_status": new_status},
        )
        amounts = [row.amount for row in result.fetchall()]
        return len(amounts), sum(amounts)

    async def increment_completed_orders(
        self, db: AsyncSession, user_ids: list[str]
    ) -> None:
        await db.execute(_INCREMENT_COMPLETED_SQL, {"user_ids": user_ids})

    async def add_penalty(
        self,
        db: AsyncSession,
        user_id: str,
        points: int,
        is_warning: bool,
        suspended_until: datetime | None,
    ) -> Account:
        result = await db.execute(
            _ADD_PENALTY_SQL,
            {
                "user_id": user_id,
                "points": points,
                "is_warning": is_warning,
                "suspended_until": suspended_until,
            },
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def suspend(
        self, db: AsyncSession, user_id: str, suspended_until: datetime
    ) -> Account:
        result = await db.execute(
            _SUSPEND_SQL, {"user_id": user_id, "suspended_until": suspended_until}
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def save_trust(
        self, db: AsyncSession, user_id: str, trust_level: str, trust_downgrades: int
    ) -> Account:
        result = await db.execute(
            _SAVE_TRUST_SQL,
            {
                "user_id": user_id,
                "trust_level": trust_level,
                "trust_downgrades": trust_downgrades,
            },
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def save_rating_stats(
        self, db: AsyncSession, user_id: str, avg_rating: float, total_reviews: int
    ) -> Account:
        result = await db.execute(
            _SAVE_RATING_SQL,
            {
                "user_id": user_id,
                "avg_rating": round(avg_rating, 2),
                "total_reviews": total_reviews,
            },
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def _insert_ledger(self, db: AsyncSession, **values: object) -> LedgerEntry:
        result = await db.execute(_INSERT_LEDGER_SQL, values)
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows — this should never happen")
        return _row_to_ledger(row)


# ---------------------------------------------------------------------------
# SQL: withdrawals
# ---------------------------------------------------------------------------

_WITHDRAWAL_COLUMNS = """
    reference, user_id, idempotency_key, amount,
    account_name, account_number, bank_code, status, ledger_entry_id,
    transfer_code, transfer_status, failure_reason, created_at, updated_at
"""

_INSERT_WITHDRAWAL_SQL = text(f"""
    INSERT INTO withdrawals
        (reference, user_id, idempotency_key, amount,
         account_name, account_number, bank_code, status, ledger_entry_id)
    VALUES
        (:reference, :user_id, :idempotency_key, :amount,
         :account_name, :account_number, :bank_code, :status, :ledger_entry_id)
    RETURNING {_WITHDRAWAL_COLUMNS}
""")

_GET_WITHDRAWAL_SQL = text(f"""
    SELECT {_WITHDRAWAL_COLUMNS}
    FROM withdrawals
    WHERE reference = :reference
""")

_GET_WITHDRAWAL_BY_KEY_SQL = text(f"""
    SELECT {_WITHDRAWAL_COLUMNS}
    FROM withdrawals
    WHERE user_id = :user_id AND idempotency_key = :idempotency_key
""")

_MARK_WITHDRAWAL_SENT_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'SENT',
        transfer_code = :transfer_code,
        transfer_status = :transfer_status
    WHERE reference = :reference AND status = 'PENDING'
    RETURNING {_WITHDRAWAL_COLUMNS}
""")

_MARK_WITHDRAWAL_FAILED_SQL = text(f"""
    UPDATE withdrawals
    SET status = 'FAILED',
        failure_reason = :reason
    WHERE reference = :reference AND status = 'PENDING'
    RETURNING {_WITHDRAWAL_COLUMNS}
""")

_LIST_WITHDRAWALS_SQL = text(f"""
    SELECT {_WITHDRAWAL_COLUMNS}
    FROM withdrawals
    WHERE user_id = :user_id
    ORDER BY created_at DESC, reference DESC
    LIMIT :limit
""")


def _row_to_withdrawal(row: object) -> Withdrawal:
    return Withdrawal(
        reference=row.reference,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        idempotency_key=row.idempotency_key,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        account_name=row.account_name,  # type: ignore[attr-defined]
        account_number=row.account_number,  # type: ignore[attr-defined]
        bank_code=row.bank_code,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        ledger_entry_id=row.ledger_entry_id,  # type: ignore[attr-defined]
        transfer_code=row.transfer_code,  # type: ignore[attr-defined]
        transfer_status=row.transfer_status,  # type: ignore[attr-defined]
        failure_reason=row.failure_reason,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class WithdrawalRepository:
    """Payout records; status moves PENDING -> SENT or PENDING -> FAILED once."""

    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal:
        result = await db.execute(
            _INSERT_WITHDRAWAL_SQL,
            {
                "reference": withdrawal.reference,
                "user_id": withdrawal.user_id,
                "idempotency_key": withdrawal.idempotency_key,
                "amount": withdrawal.amount,
                "account_name": withdrawal.account_name,
                "account_number": withdrawal.account_number,
                "bank_code": withdrawal.bank_code,
                "status": withdrawal.status,
                "ledger_entry_id": withdrawal.ledger_entry_id,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Withdrawal insert returned no rows")
        return _row_to_withdrawal(row)

    async def get_by_reference(self, db: AsyncSession, reference: str) -> Withdrawal | None:
        result = await db.execute(_GET_WITHDRAWAL_SQL, {"reference": reference})
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def get_by_key(
        self, db: AsyncSession, user_id: str, idempotency_key: str
    ) -> Withdrawal | None:
        result = await db.execute(
            _GET_WITHDRAWAL_BY_KEY_SQL,
            {"user_id": user_id, "idempotency_key": idempotency_key},
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def mark_sent(
        self, db: AsyncSession, reference: str, transfer_code: str, transfer_status: str
    ) -> Withdrawal | None:
        result = await db.execute(
            _MARK_WITHDRAWAL_SENT_SQL,
            {
                "reference": reference,
                "transfer_code": transfer_code,
                "transfer_status": transfer_status,
            },
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def mark_failed(
        self, db: AsyncSession, reference: str, reason: str
    ) -> Withdrawal | None:
        result = await db.execute(
            _MARK_WITHDRAWAL_FAILED_SQL, {"reference": reference, "reason": reason[:500]}
        )
        row = result.fetchone()
        return _row_to_withdrawal(row) if row else None

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[Withdrawal]:
        result = await db.execute(_LIST_WITHDRAWALS_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_withdrawal(row) for row in result.fetchall()]
