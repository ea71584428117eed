"""AccountApplicationService — balances, profile, ledger history and payouts.

Withdrawal is two-phase. The ledger debit and a PENDING withdrawal row are
committed before the gateway is called, so a timeout that hides whether the
transfer happened leaves the money reserved instead of spendable twice. The
outcome is settled later: SENT once the gateway confirms the transfer, FAILED
with a reversal credit once it rejects it. A retry with the same idempotency
key, or an explicit reconcile, asks the gateway for the transfer by reference
before sending it again.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    ProfileResponse,
    WithdrawalItem,
    WithdrawResponse,
)
from src.cm_account.domain.constants import MIN_WITHDRAWAL
from src.cm_account.domain.models import Account, Withdrawal
from src.cm_account.domain.repository import (
    AccountRepositoryProtocol,
    WithdrawalRepositoryProtocol,
)
from src.cm_account.domain.trust import compute_trust_level
from src.cm_account.infrastructure.persistence import AccountRepository, WithdrawalRepository
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import isoformat_or_none, utc_now
from src.cm_common.enums import (
    LedgerEntryType,
    LedgerPool,
    NotificationKind,
    WithdrawalStatus,
)
from src.cm_common.errors import (
    AccountNotFoundError,
    BelowMinimumWithdrawalError,
    PaymentGatewayError,
    PayoutFailedError,
    WithdrawalInProgressError,
    WithdrawalKeyConflictError,
    WithdrawalNotFoundError,
)
from src.cm_common.id_generator import generate_withdrawal_reference
from src.cm_common.money import kobo_to_display
from src.cm_common.pagination import cursor_decode, cursor_encode
from src.cm_notification.application.service import NotificationService
from src.cm_payment.domain.gateway import PaymentGatewayProtocol, ReferenceGuardProtocol
from src.cm_payment.domain.models import BankDetails, TransferResult
from src.cm_payment.infrastructure.paystack import PaystackGateway
from src.cm_payment.infrastructure.reference_guard import RedisReferenceGuard

logger = logging.getLogger(__name__)

# Paystack transfer states that will never turn into a payout
_DEAD_TRANSFER_STATES = frozenset({"failed", "reversed", "abandoned"})


class AccountApplicationService:
    def __init__(
        self,
        repo: AccountRepositoryProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        notifier: NotificationService | None = None,
        withdrawals: WithdrawalRepositoryProtocol | None = None,
        reference_guard: ReferenceGuardProtocol | None = None,
    ) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()
        self._gateway: PaymentGatewayProtocol = gateway or PaystackGateway()
        self._notifier = notifier or NotificationService()
        self._withdrawals: WithdrawalRepositoryProtocol = withdrawals or WithdrawalRepository()
        self._guard: ReferenceGuardProtocol = reference_guard or RedisReferenceGuard(
            namespace="withdraw"
        )

    async def _get(self, db: AsyncSession, user_id: str) -> Account:
        account = await self._repo.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    async def get_balance(self, db: AsyncSession, actor: Actor) -> BalanceResponse:
        account = await self._get(db, actor.user_id)
        return BalanceResponse.from_kobo(
            user_id=actor.user_id,
            available=account.available_balance,
            pending=account.pending_balance,
        )

    async def get_profile(self, db: AsyncSession, user_id: str) -> ProfileResponse:
        account = await self._get(db, user_id)
        level = compute_trust_level(
            account.avg_rating, account.total_reviews, account.trust_downgrades
        )
        suspended = account.suspension_active(utc_now())
        return ProfileResponse(
            user_id=user_id,
            trust_level=level.value,
            avg_rating=account.avg_rating,
            total_reviews=account.total_reviews,
            completed_orders=account.completed_orders,
            penalty_points=account.penalty_points,
            warning_count=account.warning_count,
            is_suspended=suspended,
            suspended_until=isoformat_or_none(account.suspended_until) if suspended else None,
        )

    async def withdraw(
        self,
        db: AsyncSession,
        actor: Actor,
        amount: int,
        bank: BankDetails,
        idempotency_key: str | None = None,
    ) -> WithdrawResponse:
        if amount < MIN_WITHDRAWAL:
            raise BelowMinimumWithdrawalError(MIN_WITHDRAWAL)

        withdrawal, created = await self._open_withdrawal(
            db, actor, amount, bank, idempotency_key
        )
        if withdrawal.status != WithdrawalStatus.PENDING:
            logger.info(
                "Withdrawal %s replayed for key %s", withdrawal.reference, idempotency_key
            )
            return await self._to_response(db, withdrawal)
        # A PENDING row found by key may already have reached the gateway
        return await self._drive(db, withdrawal, look_up_first=not created)

    async def reconcile_withdrawal(
        self, db: AsyncSession, actor: Actor, reference: str
    ) -> WithdrawResponse:
        """Settle a PENDING withdrawal from the gateway's record of the transfer."""
        withdrawal = await self._withdrawals.get_by_reference(db, reference)
        if withdrawal is None or (
            withdrawal.user_id != actor.user_id and not actor.is_admin
        ):
            raise WithdrawalNotFoundError(reference)
        if withdrawal.status != WithdrawalStatus.PENDING:
            return await self._to_response(db, withdrawal)
        return await self._drive(db, withdrawal, look_up_first=True)

    async def list_withdrawals(
        self, db: AsyncSession, actor: Actor, limit: int
    ) -> list[WithdrawalItem]:
        rows = await self._withdrawals.list_for_user(db, actor.user_id, limit)
        return [
            WithdrawalItem(
                reference=w.reference,
                status=w.status,
                amount_kobo=w.amount,
                amount_display=kobo_to_display(w.amount),
                bank=w.bank_label,
                transfer_code=w.transfer_code,
                failure_reason=w.failure_reason,
                created_at=isoformat_or_none(w.created_at) or "",
            )
            for w in rows
        ]

    async def _open_withdrawal(
        self,
        db: AsyncSession,
        actor: Actor,
        amount: int,
        bank: BankDetails,
        idempotency_key: str | None,
    ) -> tuple[Withdrawal, bool]:
        """Debit and record the withdrawal, or find the one this key already made."""
        try:
            # The row lock also serializes two requests carrying the same key
            await self._repo.lock_account(db, actor.user_id)
            existing = None
            if idempotency_key is not None:
                existing = await self._withdrawals.get_by_key(
                    db, actor.user_id, idempotency_key
                )
            if existing is not None:
                if not existing.same_request(amount, bank.account_number, bank.bank_code):
                    raise WithdrawalKeyConflictError(str(idempotency_key))
                withdrawal, created = existing, False
            else:
                reference = generate_withdrawal_reference()
                _, entry = await self._repo.apply_delta(
                    db,
                    actor.user_id,
                    LedgerPool.AVAILABLE,
                    -amount,
                    LedgerEntryType.WITHDRAWAL,
                    reference,
                    f"Withdrawal to {bank.bank_code}/{bank.account_number[-4:]}",
                )
                withdrawal = await self._withdrawals.insert(
                    db,
                    Withdrawal(
                        reference=reference,
                        user_id=actor.user_id,
                        amount=amount,
                        account_name=bank.account_name,
                        account_number=bank.account_number,
                        bank_code=bank.bank_code,
                        ledger_entry_id=entry.id,
                        status=WithdrawalStatus.PENDING.value,
                        idempotency_key=idempotency_key,
                    ),
                )
                created = True
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return withdrawal, created

    async def _drive(
        self, db: AsyncSession, withdrawal: Withdrawal, look_up_first: bool
    ) -> WithdrawResponse:
        if not await self._guard.acquire(withdrawal.reference):
            raise WithdrawalInProgressError(withdrawal.reference)
        try:
            transfer = None
            if look_up_first:
                transfer = await self._gateway.fetch_transfer(withdrawal.reference)
            if transfer is None:
                transfer = await self._send(db, withdrawal)
            if transfer.status in _DEAD_TRANSFER_STATES:
                await self._fail(db, withdrawal, f"transfer {transfer.status}")
                raise PayoutFailedError(f"transfer {transfer.status}")
            settled = await self._finish(db, withdrawal, transfer)
        finally:
            await self._guard.release(withdrawal.reference)
        return await self._to_response(db, settled)

    async def _send(self, db: AsyncSession, withdrawal: Withdrawal) -> TransferResult:
        bank = BankDetails(
            account_name=withdrawal.account_name,
            account_number=withdrawal.account_number,
            bank_code=withdrawal.bank_code,
        )
        try:
            recipient = await self._gateway.create_transfer_recipient(bank)
            return await self._gateway.initiate_transfer(
                withdrawal.amount, recipient, withdrawal.reference, "Campus marketplace payout"
            )
        except PayoutFailedError as exc:
            await self._fail(db, withdrawal, exc.message)
            raise
        except PaymentGatewayError:
            # Outcome unknown: the debit stays reserved until a retry or reconcile
            logger.warning(
                "Withdrawal %s left PENDING after a gateway error", withdrawal.reference
            )
            raise

    async def _finish(
        self, db: AsyncSession, withdrawal: Withdrawal, transfer: TransferResult
    ) -> Withdrawal:
        try:
            settled = await self._withdrawals.mark_sent(
                db, withdrawal.reference, transfer.transfer_code, transfer.status
            )
            if settled is not None:
                await self._notifier.notify(
                    db,
                    withdrawal.user_id,
                    NotificationKind.WITHDRAWAL,
                    "Withdrawal sent",
                    f"{kobo_to_display(withdrawal.amount)} is on its way to your bank account.",
                )
            else:
                settled = (
                    await self._withdrawals.get_by_reference(db, withdrawal.reference)
                    or withdrawal
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Withdrawal %s: user=%s amount=%d transfer=%s",
            withdrawal.reference, withdrawal.user_id, withdrawal.amount, transfer.transfer_code,
        )
        return settled

    async def _fail(self, db: AsyncSession, withdrawal: Withdrawal, reason: str) -> None:
        """Mark FAILED and give the money back with a reversal credit."""
        try:
            await self._repo.lock_account(db, withdrawal.user_id)
            failed = await self._withdrawals.mark_failed(db, withdrawal.reference, reason)
            if failed is not None:
                await self._repo.apply_delta(
                    db,
                    withdrawal.user_id,
                    LedgerPool.AVAILABLE,
                    withdrawal.amount,
                    LedgerEntryType.CREDIT,
                    f"{withdrawal.reference}-REVERSAL",
                    f"Withdrawal {withdrawal.reference} reversed: {reason}"[:500],
                )
                await self._notifier.notify(
                    db,
                    withdrawal.user_id,
                    NotificationKind.WITHDRAWAL,
                    "Withdrawal failed",
                    f"{kobo_to_display(withdrawal.amount)} was returned to your balance.",
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning("Withdrawal %s failed: %s", withdrawal.reference, reason)

    async def _to_response(self, db: AsyncSession, withdrawal: Withdrawal) -> WithdrawResponse:
        account = await self._get(db, withdrawal.user_id)
        return WithdrawResponse(
            reference=withdrawal.reference,
            status=withdrawal.status,
            transfer_code=withdrawal.transfer_code,
            transfer_status=withdrawal.transfer_status,
            available_balance_kobo=account.available_balance,
            available_balance_display=kobo_to_display(account.available_balance),
            withdrawn_kobo=withdrawal.amount,
            withdrawn_display=kobo_to_display(withdrawal.amount),
            ledger_entry_id=withdrawal.ledger_entry_id,
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        actor: Actor,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db,
            actor.user_id,
            cursor_id if isinstance(cursor_id, int) else None,
            limit + 1,
            entry_type,
        )
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            LedgerEntryItem(
                id=e.id,
                entry_type=e.entry_type,
                pool=e.pool,
                amount_kobo=e.amount,
                amount_display=kobo_to_display(e.amount),
                balance_after_kobo=e.balance_after,
                balance_after_display=kobo_to_display(e.balance_after),
                reference=e.reference,
                order_id=e.order_id,
                escrow_status=e.escrow_status,
                description=e.description,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
