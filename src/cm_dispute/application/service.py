"""DisputeService — open, discuss and resolve order disputes.

Resolution is one transaction: the dispute status flip (compare-and-set on
an unresolved status), any refund ledger movements, penalties, the order's
``is_disputed`` flag and the notifications all commit together or not at all.
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import (
    DisputeStatus,
    NotificationKind,
    PenaltyAction,
    PostReleaseRefundPolicy,
    SenderType,
)
from src.cm_common.errors import (
    AlreadyDisputedError,
    DisputeAlreadyResolvedError,
    DisputeNotEligibleError,
    DisputeNotFoundError,
    InvalidRefundAmountError,
    InvalidResolutionStatusError,
    NotAuthorizedError,
    NotYourOrderError,
    OrderNotFoundError,
    RefundAfterReleaseError,
)
from src.cm_common.id_generator import generate_id
from src.cm_dispute.application.penalty_service import PenaltyService
from src.cm_dispute.application.schemas import DisputeMessageResponse, DisputeResponse
from src.cm_dispute.domain.models import Dispute
from src.cm_dispute.domain.penalty_policy import (
    DISPUTE_SELLER_BAN_POINTS,
    DISPUTE_WARNING_POINTS,
)
from src.cm_dispute.domain.repository import DisputeRepositoryProtocol
from src.cm_dispute.infrastructure.persistence import DisputeRepository
from src.cm_escrow.application.engine import EscrowEngine
from src.cm_notification.application.service import NotificationService
from src.cm_order.domain.models import Order
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.domain.state_machine import DISPUTABLE_STATUSES
from src.cm_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

RESOLUTION_STATUSES = frozenset({
    DisputeStatus.RESOLVED_BUYER_FAVOR,
    DisputeStatus.RESOLVED_SELLER_FAVOR,
    DisputeStatus.RESOLVED_COMPROMISE,
    DisputeStatus.DISMISSED,
})


class DisputeService:
    def __init__(
        self,
        repo: DisputeRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        escrow: EscrowEngine | None = None,
        penalties: PenaltyService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._repo: DisputeRepositoryProtocol = repo or DisputeRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        accounts = account_repo or AccountRepository()
        self._notifier = notifier or NotificationService()
        self._escrow = escrow or EscrowEngine(accounts)
        self._penalties = penalties or PenaltyService(
            account_repo=accounts, notifier=self._notifier, dispute_repo=self._repo
        )

    # ------------------------------------------------------------------
    # Parties
    # ------------------------------------------------------------------

    async def open_dispute(
        self,
        db: AsyncSession,
        actor: Actor,
        order_id: str,
        reason: str,
        evidence: list[str],
    ) -> DisputeResponse:
        try:
            order = await self._orders.get_for_update(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.buyer_id != actor.user_id:
                raise NotYourOrderError(order_id)
            if await self._repo.get_by_order(db, order_id) is not None:
                raise AlreadyDisputedError(order_id)
            if order.status not in DISPUTABLE_STATUSES:
                raise DisputeNotEligibleError(order.status)

            dispute = await self._repo.insert(
                db,
                Dispute(
                    id=generate_id(),
                    order_id=order.id,
                    buyer_id=order.buyer_id,
                    seller_id=order.seller_id,
                    reason=reason,
                    buyer_evidence=list(evidence),
                ),
            )
            if dispute is None:
                raise AlreadyDisputedError(order_id)
            await self._orders.set_disputed(db, order.id, True)
            await self._repo.add_message(
                db, dispute.id, actor.user_id, SenderType.BUYER.value, reason, list(evidence)
            )
            await self._notifier.notify(
                db,
                order.seller_id,
                NotificationKind.DISPUTE_OPENED,
                "Dispute opened",
                f"The buyer opened a dispute on order {order.order_number}.",
                order_id=order.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Dispute %s opened on order %s", dispute.id, order.order_number)
        return DisputeResponse.from_domain(dispute)

    async def respond(
        self,
        db: AsyncSession,
        actor: Actor,
        dispute_id: str,
        message: str,
        attachments: list[str],
        seller_evidence: list[str],
    ) -> DisputeMessageResponse:
        """Append a message. The seller's first reply moves OPEN to UNDER_REVIEW."""
        try:
            dispute = await self._get_visible(db, actor, dispute_id)
            if dispute.is_resolved:
                raise DisputeAlreadyResolvedError(dispute_id)

            if actor.user_id == dispute.seller_id:
                sender_type = SenderType.SELLER
            elif actor.is_admin:
                sender_type = SenderType.ADMIN
            else:
                sender_type = SenderType.BUYER

            msg = await self._repo.add_message(
                db, dispute.id, actor.user_id, sender_type.value, message, list(attachments)
            )
            if sender_type == SenderType.SELLER:
                updated = await self._repo.record_seller_response(
                    db, dispute.id, list(seller_evidence)
                )
                if updated is None:
                    raise DisputeAlreadyResolvedError(dispute_id)

            for user_id in {dispute.buyer_id, dispute.seller_id} - {actor.user_id}:
                await self._notifier.notify(
                    db,
                    user_id,
                    NotificationKind.DISPUTE_MESSAGE,
                    "New dispute message",
                    message[:200],
                    order_id=dispute.order_id,
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return DisputeMessageResponse.from_domain(msg)

    async def list_messages(
        self, db: AsyncSession, actor: Actor, dispute_id: str
    ) -> list[DisputeMessageResponse]:
        dispute = await self._get_visible(db, actor, dispute_id)
        rows = await self._repo.list_messages(db, dispute.id)
        return [DisputeMessageResponse.from_domain(m) for m in rows]

    async def get_dispute(
        self, db: AsyncSession, actor: Actor, dispute_id: str
    ) -> DisputeResponse:
        return DisputeResponse.from_domain(await self._get_visible(db, actor, dispute_id))

    async def list_disputes(
        self, db: AsyncSession, actor: Actor, status: str | None, limit: int
    ) -> list[DisputeResponse]:
        if actor.is_admin:
            rows = await self._repo.list_all(db, status, limit)
        else:
            rows = await self._repo.list_for_user(db, actor.user_id, status, limit)
        return [DisputeResponse.from_domain(d) for d in rows]

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def resolve(
        self,
        db: AsyncSession,
        actor: Actor,
        dispute_id: str,
        status: str,
        resolution: str,
        refund_amount: int = 0,
        penalize_buyer: bool = False,
        penalize_seller: bool = False,
        penalty_reason: str = "",
    ) -> DisputeResponse:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can resolve disputes")
        try:
            target = DisputeStatus(status)
        except ValueError:
            raise InvalidResolutionStatusError(status) from None
        if target not in RESOLUTION_STATUSES:
            raise InvalidResolutionStatusError(status)
        if refund_amount < 0:
            raise InvalidRefundAmountError("refund cannot be negative")
        if refund_amount > 0 and target != DisputeStatus.RESOLVED_BUYER_FAVOR:
            raise InvalidRefundAmountError("refunds are only granted in the buyer's favour")

        try:
            dispute = await self._repo.get_for_update(db, dispute_id)
            if dispute is None:
                raise DisputeNotFoundError(dispute_id)
            if dispute.is_resolved:
                raise DisputeAlreadyResolvedError(dispute_id)
            order = await self._orders.get_for_update(db, dispute.order_id)
            if order is None:
                raise OrderNotFoundError(dispute.order_id)

            resolved = await self._repo.resolve(
                db, dispute_id, target.value, resolution, refund_amount, actor.user_id
            )
            if resolved is None:
                raise DisputeAlreadyResolvedError(dispute_id)

            if refund_amount > 0:
                await self._refund(db, order, dispute_id, refund_amount)

            now = utc_now()
            if penalize_buyer:
                await self._penalties.apply(
                    db,
                    user_id=dispute.buyer_id,
                    action=PenaltyAction.WARNING,
                    points=DISPUTE_WARNING_POINTS,
                    reason=penalty_reason or "False dispute claim",
                    issued_by=actor.user_id,
                    banned_until=None,
                    is_warning=True,
                    dispute_id=dispute_id,
                )
            if penalize_seller:
                buyer_favor = target == DisputeStatus.RESOLVED_BUYER_FAVOR
                await self._penalties.apply(
                    db,
                    user_id=dispute.seller_id,
                    action=PenaltyAction.TEMP_BAN_1DAY if buyer_favor else PenaltyAction.WARNING,
                    points=DISPUTE_SELLER_BAN_POINTS if buyer_favor else DISPUTE_WARNING_POINTS,
                    reason=penalty_reason or "Dispute resolved against seller",
                    issued_by=actor.user_id,
                    banned_until=now + timedelta(days=1) if buyer_favor else None,
                    is_warning=True,
                    dispute_id=dispute_id,
                )

            await self._orders.set_disputed(db, order.id, False)
            for user_id in (dispute.buyer_id, dispute.seller_id):
                await self._notifier.notify(
                    db,
                    user_id,
                    NotificationKind.DISPUTE_RESOLVED,
                    "Dispute resolved",
                    f"The dispute on order {order.order_number} was closed: {target.value}.",
                    order_id=order.id,
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Dispute %s resolved as %s by %s (refund=%d)",
            dispute_id, target.value, actor.user_id, refund_amount,
        )
        return DisputeResponse.from_domain(resolved)

    async def _refund(
        self, db: AsyncSession, order: Order, dispute_id: str, amount: int
    ) -> None:
        if not order.is_released:
            await self._escrow.refund_from_escrow(db, order, dispute_id, amount)
        elif settings.DISPUTE_POST_RELEASE_REFUND == PostReleaseRefundPolicy.REJECT:
            raise RefundAfterReleaseError(order.id)
        else:
            await self._escrow.refund_after_release(db, order, dispute_id, amount)
        await self._orders.add_refund(db, order.id, amount)

    # ------------------------------------------------------------------

    async def _get_visible(self, db: AsyncSession, actor: Actor, dispute_id: str) -> Dispute:
        dispute = await self._repo.get_by_id(db, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(dispute_id)
        if not dispute.involves(actor.user_id) and not actor.is_admin:
            raise NotAuthorizedError("You are not a party to this dispute")
        return dispute
