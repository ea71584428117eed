"""OrderApplicationService — the order lifecycle and its money movements.

Every mutating operation is one transaction: it either commits all of its
order, stock, ledger and notification writes, or rolls all of them back.
State changes are compare-and-set updates in the repository, so two
concurrent requests can never both win the same transition.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_catalog.domain.repository import ProductRepositoryProtocol
from src.cm_catalog.infrastructure.persistence import ProductRepository
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import LedgerEntryType, NotificationKind, OrderStatus, UserRole
from src.cm_common.errors import (
    AccountSuspendedError,
    AlreadyAssignedError,
    AlreadyReleasedError,
    InvalidStatusTransitionError,
    NotAuthorizedError,
    NotDeliveredError,
    NotYourDeliveryError,
    NotYourOrderError,
    OrderNotFoundError,
    OrderNotPaidError,
    OrderNotPendingError,
    OrderUnderDisputeError,
    OutOfStockError,
    PaymentAlreadyProcessedError,
    PaymentVerificationFailedError,
    ProductNotFoundError,
    ProductUnavailableError,
    SelfPurchaseError,
)
from src.cm_common.id_generator import generate_id, generate_order_number
from src.cm_common.pagination import cursor_decode, cursor_encode
from src.cm_escrow.application.engine import EscrowEngine
from src.cm_escrow.domain.policy import DELIVERY_FEE, quote
from src.cm_notification.application.service import NotificationService
from src.cm_order.application.schemas import (
    OrderListResponse,
    OrderResponse,
    SettlementResponse,
)
from src.cm_order.domain.models import Order
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.domain.state_machine import validate_rider_transition
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_payment.application.schemas import InitializePaymentResponse, PaymentMetadata
from src.cm_payment.domain.gateway import PaymentGatewayProtocol, ReferenceGuardProtocol
from src.cm_payment.domain.models import PaymentVerification
from src.cm_payment.infrastructure.paystack import PaystackGateway
from src.cm_payment.infrastructure.reference_guard import RedisReferenceGuard

logger = logging.getLogger(__name__)


class OrderApplicationService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        product_repo: ProductRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        escrow: EscrowEngine | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        reference_guard: ReferenceGuardProtocol | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._products: ProductRepositoryProtocol = product_repo or ProductRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._escrow = escrow or EscrowEngine(self._accounts)
        self._gateway: PaymentGatewayProtocol = gateway or PaystackGateway()
        self._guard: ReferenceGuardProtocol = reference_guard or RedisReferenceGuard()
        self._notifier = notifier or NotificationService()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        actor: Actor,
        product_id: str,
        quantity: int,
        delivery_address: str = "",
    ) -> OrderResponse:
        """Create an unpaid PENDING order with its price snapshot.

        Nothing moves yet: stock and escrow change only when the payment is
        confirmed.
        """
        await self._ensure_not_suspended(db, actor.user_id)
        product = await self._products.get_by_id(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.seller_id == actor.user_id:
            raise SelfPurchaseError()
        if not product.is_active:
            raise ProductUnavailableError(product_id)
        if product.quantity < quantity:
            raise OutOfStockError(quantity, product.quantity)

        q = quote(product.price, quantity)
        order = Order(
            id=generate_id(),
            order_number=generate_order_number(),
            buyer_id=actor.user_id,
            seller_id=product.seller_id,
            product_id=product.id,
            quantity=quantity,
            unit_price=q.unit_price,
            product_price=q.product_price,
            delivery_fee=q.delivery_fee,
            platform_commission=q.platform_commission,
            total_amount=q.total_amount,
            delivery_address=delivery_address,
        )
        try:
            saved = await self._repo.insert(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s created for buyer %s", saved.order_number, actor.user_id)
        return OrderResponse.from_domain(saved)

    async def initialize_payment(
        self, db: AsyncSession, actor: Actor, order_id: str, email: str
    ) -> InitializePaymentResponse:
        order = await self._get(db, order_id)
        if order.buyer_id != actor.user_id:
            raise NotYourOrderError(order_id)
        if order.is_paid:
            raise PaymentAlreadyProcessedError(order.payment_reference or order.order_number)

        reference = f"{order.order_number}-PAY-{generate_id()}"
        metadata = PaymentMetadata(
            product_id=order.product_id,
            buyer_id=order.buyer_id,
            product_price=order.product_price,
            delivery_fee=order.delivery_fee,
            total_amount=order.total_amount,
            quantity=order.quantity,
            order_id=order.id,
        )
        auth = await self._gateway.initialize_transaction(
            email, order.total_amount, reference, metadata.model_dump(by_alias=True)
        )
        return InitializePaymentResponse(
            order_id=order.id,
            reference=auth.reference,
            authorization_url=auth.authorization_url,
            access_code=auth.access_code,
            amount_kobo=order.total_amount,
        )

    async def confirm_payment(self, db: AsyncSession, reference: str) -> OrderResponse:
        """Turn a verified gateway payment into a paid order with the seller escrow open.

        Idempotent per reference: a second call (or a concurrent duplicate)
        raises PaymentAlreadyProcessedError and moves no money.
        """
        if not await self._guard.acquire(reference):
            raise PaymentAlreadyProcessedError(reference)
        try:
            if await self._repo.get_by_payment_reference(db, reference) is not None:
                raise PaymentAlreadyProcessedError(reference)

            verification = await self._gateway.verify_transaction(reference)
            meta = self._validate_verification(verification)

            try:
                order = await self._settle_payment(db, reference, meta)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        finally:
            await self._guard.release(reference)

        logger.info(
            "Payment %s confirmed: order %s total=%d",
            reference, order.order_number, order.total_amount,
        )
        return OrderResponse.from_domain(order)

    def _validate_verification(self, verification: PaymentVerification) -> PaymentMetadata:
        if not verification.is_successful:
            raise PaymentVerificationFailedError(
                verification.gateway_response or f"status={verification.status}"
            )
        try:
            meta = PaymentMetadata.model_validate(verification.metadata)
        except ValidationError:
            raise PaymentVerificationFailedError("payment metadata is incomplete") from None
        if meta.delivery_fee != DELIVERY_FEE:
            raise PaymentVerificationFailedError(
                f"delivery fee {meta.delivery_fee} != {DELIVERY_FEE}"
            )
        if meta.total_amount != meta.product_price + meta.delivery_fee:
            raise PaymentVerificationFailedError("total does not equal price plus delivery fee")
        if verification.amount != meta.total_amount:
            raise PaymentVerificationFailedError(
                f"paid {verification.amount}, expected {meta.total_amount}"
            )
        if meta.product_price % meta.quantity != 0:
            raise PaymentVerificationFailedError("price is not a whole multiple of quantity")
        return meta

    async def _settle_payment(
        self, db: AsyncSession, reference: str, meta: PaymentMetadata
    ) -> Order:
        if meta.order_id:
            order = await self._repo.get_for_update(db, meta.order_id)
            if order is None:
                raise OrderNotFoundError(meta.order_id)
            if (
                order.buyer_id != meta.buyer_id
                or order.product_id != meta.product_id
                or order.total_amount != meta.total_amount
            ):
                raise PaymentVerificationFailedError("metadata does not match the order")
            paid = await self._repo.mark_paid(db, order.id, reference)
            if paid is None:
                raise PaymentAlreadyProcessedError(reference)
        else:
            product = await self._products.get_by_id(db, meta.product_id)
            if product is None:
                raise ProductNotFoundError(meta.product_id)
            if product.seller_id == meta.buyer_id:
                raise SelfPurchaseError()
            # Priced from the catalog; the metadata price must agree
            q = quote(product.price, meta.quantity)
            if q.product_price != meta.product_price:
                raise PaymentVerificationFailedError(
                    f"paid for {meta.product_price} kobo of goods, "
                    f"catalog price is {q.product_price}"
                )
            paid = await self._repo.insert(
                db,
                Order(
                    id=generate_id(),
                    order_number=generate_order_number(),
                    buyer_id=meta.buyer_id,
                    seller_id=product.seller_id,
                    product_id=product.id,
                    quantity=q.quantity,
                    unit_price=q.unit_price,
                    product_price=q.product_price,
                    delivery_fee=q.delivery_fee,
                    platform_commission=q.platform_commission,
                    total_amount=q.total_amount,
                    is_paid=True,
                    payment_reference=reference,
                ),
            )

        if await self._products.decrement_stock(db, paid.product_id, paid.quantity) is None:
            product = await self._products.get_by_id(db, paid.product_id)
            if product is None:
                raise ProductNotFoundError(paid.product_id)
            if not product.is_active:
                raise ProductUnavailableError(paid.product_id)
            raise OutOfStockError(paid.quantity, product.quantity)

        await self._accounts.record_external_entry(
            db,
            paid.buyer_id,
            -paid.total_amount,
            LedgerEntryType.DEBIT,
            reference,
            f"Payment for order {paid.order_number}",
            order_id=paid.id,
        )
        await self._escrow.open_seller_escrow(db, paid)
        await self._notifier.notify(
            db,
            paid.seller_id,
            NotificationKind.NEW_ORDER,
            "New order",
            f"Order {paid.order_number} has been paid and is waiting for a rider.",
            order_id=paid.id,
        )
        return paid

    # ------------------------------------------------------------------
    # Rider flow
    # ------------------------------------------------------------------

    async def accept_order(self, db: AsyncSession, actor: Actor, order_id: str) -> OrderResponse:
        if actor.role != UserRole.RIDER:
            raise NotAuthorizedError("Only riders can accept deliveries")
        await self._ensure_not_suspended(db, actor.user_id)
        try:
            assigned = await self._repo.assign_rider(db, order_id, actor.user_id)
            if assigned is None:
                current = await self._get(db, order_id)
                if current.rider_id is not None:
                    raise AlreadyAssignedError(order_id)
                if not current.is_paid:
                    raise OrderNotPaidError(order_id)
                raise OrderNotPendingError(order_id, current.status)
            await self._escrow.open_rider_escrow(db, assigned)
            for user_id in (assigned.buyer_id, assigned.seller_id):
                await self._notifier.notify(
                    db,
                    user_id,
                    NotificationKind.RIDER_ASSIGNED,
                    "Rider assigned",
                    f"A rider has accepted order {assigned.order_number}.",
                    order_id=assigned.id,
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Rider %s assigned to order %s", actor.user_id, assigned.order_number)
        return OrderResponse.from_domain(assigned)

    async def update_delivery_status(
        self, db: AsyncSession, actor: Actor, order_id: str, status: str
    ) -> OrderResponse:
        try:
            order = await self._get(db, order_id)
            if order.rider_id != actor.user_id:
                raise NotYourDeliveryError(order_id)
            target = validate_rider_transition(order.status, status)
            updated = await self._repo.advance_status(
                db, order_id, actor.user_id, order.status, target
            )
            if updated is None:
                current = await self._get(db, order_id)
                raise InvalidStatusTransitionError(current.status, status)
            await self._notifier.notify(
                db,
                updated.buyer_id,
                NotificationKind.DELIVERY_UPDATE,
                "Delivery update",
                f"Order {updated.order_number} is now {updated.status}.",
                order_id=updated.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s moved %s → %s", updated.order_number, order.status, updated.status)
        return OrderResponse.from_domain(updated)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def confirm_delivery(
        self, db: AsyncSession, actor: Actor, order_id: str
    ) -> SettlementResponse:
        """Buyer confirms receipt: COMPLETED and escrow released, atomically."""
        try:
            order = await self._repo.get_for_update(db, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.buyer_id != actor.user_id:
                raise NotYourOrderError(order_id)
            if order.status == OrderStatus.COMPLETED:
                raise AlreadyReleasedError(order_id)
            if order.status != OrderStatus.DELIVERED:
                raise NotDeliveredError(order_id)
            if order.is_disputed:
                raise OrderUnderDisputeError(order_id)

            completed = await self._repo.mark_completed(db, order_id)
            if completed is None:
                raise AlreadyReleasedError(order_id)
            breakdown = await self._escrow.release(db, completed)

            for user_id in (completed.seller_id, completed.rider_id):
                if user_id is None:
                    continue
                await self._notifier.notify(
                    db,
                    user_id,
                    NotificationKind.PAYMENT_RELEASED,
                    "Payment released",
                    f"Funds for order {completed.order_number} are now available.",
                    order_id=completed.id,
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return SettlementResponse.from_breakdown(completed, breakdown)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, db: AsyncSession, actor: Actor, order_id: str) -> OrderResponse:
        order = await self._get(db, order_id)
        participants = {order.buyer_id, order.seller_id, order.rider_id}
        if actor.user_id not in participants and not actor.is_admin:
            raise NotYourOrderError(order_id)
        return OrderResponse.from_domain(order)

    async def list_orders(
        self,
        db: AsyncSession,
        actor: Actor,
        as_role: str,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> OrderListResponse:
        cursor_id = cursor_decode(cursor)
        orders = await self._repo.list_for_user(
            db,
            actor.user_id,
            as_role,
            status,
            str(cursor_id) if cursor_id is not None else None,
            limit + 1,
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    async def list_available_orders(
        self, db: AsyncSession, actor: Actor, limit: int
    ) -> list[OrderResponse]:
        if actor.role != UserRole.RIDER:
            raise NotAuthorizedError("Only riders can browse available deliveries")
        orders = await self._repo.list_available(db, limit)
        return [OrderResponse.from_domain(o) for o in orders]

    # ------------------------------------------------------------------

    async def _get(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _ensure_not_suspended(self, db: AsyncSession, user_id: str) -> None:
        account = await self._accounts.get_account(db, user_id)
        if account is not None and account.suspension_active(utc_now()):
            until = account.suspended_until.isoformat() if account.suspended_until else None
            raise AccountSuspendedError(until)
