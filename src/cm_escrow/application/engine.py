"""EscrowEngine — opens, releases and refunds the per-order holds.

Every method runs inside the caller's transaction and never commits; the
order or dispute service that calls it commits once or rolls everything back.

Holds are ESCROW ledger rows tagged HELD on the holder's pending pool. A
release flips the tags to RELEASED and writes CREDIT rows on the available
pool; a fully refunded hold is flipped to REVERSED. No ledger row is deleted.

Reference scheme (all unique):
    {order_number}-SELLER-ESCROW / -RIDER-ESCROW      holds
    {order_number}-SELLER-CREDIT / -RIDER-CREDIT      releases
    {order_number}-PLATFORM-CREDIT                    platform share
    DISPUTE-REFUND-{dispute_id}                       buyer refund credit
    DISPUTE-REFUND-{dispute_id}-SELLER                seller hold reduction
    DISPUTE-CLAWBACK-{dispute_id}                     post-release seller debit
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.constants import PLATFORM_ACCOUNT_ID
from src.cm_account.domain.models import LedgerEntry
from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_common.enums import EscrowStatus, LedgerEntryType, LedgerPool
from src.cm_common.errors import InternalError, InvalidRefundAmountError
from src.cm_escrow.domain.policy import RIDER_SHARE, SettlementBreakdown
from src.cm_order.domain.models import Order

logger = logging.getLogger(__name__)


class EscrowEngine:
    def __init__(self, account_repo: AccountRepositoryProtocol | None = None) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()

    async def open_seller_escrow(self, db: AsyncSession, order: Order) -> LedgerEntry:
        _, entry = await self._accounts.apply_delta(
            db,
            order.seller_id,
            LedgerPool.PENDING,
            order.seller_share,
            LedgerEntryType.ESCROW,
            f"{order.order_number}-SELLER-ESCROW",
            f"Escrow for order {order.order_number}",
            order_id=order.id,
            escrow_status=EscrowStatus.HELD,
        )
        return entry

    async def open_rider_escrow(self, db: AsyncSession, order: Order) -> LedgerEntry:
        if order.rider_id is None:
            raise InternalError(f"Order {order.id} has no rider to hold funds for")
        _, entry = await self._accounts.apply_delta(
            db,
            order.rider_id,
            LedgerPool.PENDING,
            RIDER_SHARE,
            LedgerEntryType.ESCROW,
            f"{order.order_number}-RIDER-ESCROW",
            f"Delivery fee escrow for order {order.order_number}",
            order_id=order.id,
            escrow_status=EscrowStatus.HELD,
        )
        return entry

    async def release(self, db: AsyncSession, order: Order) -> SettlementBreakdown:
        """Move both holds to available balances and credit the platform share.

        The net amount still held for each party must equal what the policy
        says is owed (seller share minus refunds, rider share); any mismatch is
        an invariant violation and aborts the whole transaction.
        """
        if order.rider_id is None:
            raise InternalError(f"Order {order.id} cannot be released without a rider")
        policy = order.settlement
        seller_amount = order.remaining_seller_share

        await self._release_hold(db, order.seller_id, order, seller_amount, "SELLER")
        await self._release_hold(db, order.rider_id, order, policy.rider, "RIDER")
        await self._accounts.apply_delta(
            db,
            PLATFORM_ACCOUNT_ID,
            LedgerPool.AVAILABLE,
            policy.platform,
            LedgerEntryType.CREDIT,
            f"{order.order_number}-PLATFORM-CREDIT",
            f"Platform commission for order {order.order_number}",
            order_id=order.id,
        )
        await self._accounts.increment_completed_orders(
            db, [order.seller_id, order.rider_id, order.buyer_id]
        )

        breakdown = SettlementBreakdown(
            seller=seller_amount,
            rider=policy.rider,
            platform=policy.platform,
            refunded=order.refunded_amount,
        )
        if breakdown.total != order.total_amount:
            raise InternalError(
                f"Settlement of order {order.id} does not conserve money: "
                f"{breakdown.total} != {order.total_amount}"
            )
        logger.info(
            "Escrow released for order %s: seller=%d rider=%d platform=%d refunded=%d",
            order.order_number,
            breakdown.seller,
            breakdown.rider,
            breakdown.platform,
            breakdown.refunded,
        )
        return breakdown

    async def refund_from_escrow(
        self, db: AsyncSession, order: Order, dispute_id: str, amount: int
    ) -> None:
        """Refund the buyer out of the seller's still-held share (pre-release)."""
        if order.is_released:
            raise InternalError(f"Escrow of order {order.id} was already released")
        remaining = order.remaining_seller_share
        if amount <= 0 or amount > remaining:
            raise InvalidRefundAmountError(
                f"{amount} kobo requested, {remaining} kobo still held for the seller"
            )
        await self._accounts.apply_delta(
            db,
            order.seller_id,
            LedgerPool.PENDING,
            -amount,
            LedgerEntryType.ESCROW,
            f"DISPUTE-REFUND-{dispute_id}-SELLER",
            f"Dispute refund taken from escrow of order {order.order_number}",
            order_id=order.id,
            escrow_status=EscrowStatus.HELD,
        )
        await self._accounts.apply_delta(
            db,
            order.buyer_id,
            LedgerPool.AVAILABLE,
            amount,
            LedgerEntryType.CREDIT,
            f"DISPUTE-REFUND-{dispute_id}",
            f"Dispute refund for order {order.order_number}",
            order_id=order.id,
        )
        if amount == remaining:
            _, net = await self._accounts.settle_escrow_holds(
                db, order.seller_id, order.id, EscrowStatus.REVERSED
            )
            if net != 0:
                raise InternalError(
                    f"Seller hold of order {order.id} nets {net} after a full refund"
                )
        logger.info(
            "Refunded %d kobo from escrow of order %s (dispute %s)",
            amount, order.order_number, dispute_id,
        )

    async def refund_after_release(
        self, db: AsyncSession, order: Order, dispute_id: str, amount: int
    ) -> None:
        """Claw the refund back from the seller's available balance (post-release).

        Raises InsufficientBalanceError if the seller has already withdrawn it.
        """
        remaining = order.remaining_seller_share
        if amount <= 0 or amount > remaining:
            raise InvalidRefundAmountError(
                f"{amount} kobo requested, seller received {remaining} kobo"
            )
        await self._accounts.apply_delta(
            db,
            order.seller_id,
            LedgerPool.AVAILABLE,
            -amount,
            LedgerEntryType.DEBIT,
            f"DISPUTE-CLAWBACK-{dispute_id}",
            f"Dispute clawback for order {order.order_number}",
            order_id=order.id,
        )
        await self._accounts.apply_delta(
            db,
            order.buyer_id,
            LedgerPool.AVAILABLE,
            amount,
            LedgerEntryType.CREDIT,
            f"DISPUTE-REFUND-{dispute_id}",
            f"Dispute refund for order {order.order_number}",
            order_id=order.id,
        )
        logger.info(
            "Clawed back %d kobo for order %s (dispute %s)",
            amount, order.order_number, dispute_id,
        )

    async def _release_hold(
        self, db: AsyncSession, user_id: str, order: Order, expected: int, party: str
    ) -> None:
        count, net = await self._accounts.settle_escrow_holds(
            db, user_id, order.id, EscrowStatus.RELEASED
        )
        if count == 0 and expected == 0:
            # Seller hold fully refunded earlier and already REVERSED
            return
        if net != expected:
            raise InternalError(
                f"{party} escrow of order {order.id} holds {net} kobo, expected {expected}"
            )
        await self._accounts.move_pending_to_available(
            db,
            user_id,
            expected,
            f"{order.order_number}-{party}-CREDIT",
            f"Payment released for order {order.order_number}",
            order.id,
        )
