"""Unit tests for OrderApplicationService over the in-memory marketplace."""

import asyncio
from datetime import timedelta

import pytest

from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.errors import (
    AccountSuspendedError,
    AlreadyAssignedError,
    AlreadyReleasedError,
    InvalidStatusTransitionError,
    NotAuthorizedError,
    NotDeliveredError,
    NotYourDeliveryError,
    NotYourOrderError,
    OrderNotPaidError,
    OrderUnderDisputeError,
    OutOfStockError,
    PaymentAlreadyProcessedError,
    PaymentGatewayError,
    PaymentVerificationFailedError,
    ProductNotFoundError,
    ProductUnavailableError,
    SelfPurchaseError,
)
from src.cm_common.money import naira
from src.cm_order.application.schemas import OrderResponse, SettlementResponse
from tests.unit.fakes import Marketplace

BUYER = Actor(user_id="buyer-1", role="BUYER")
SELLER = Actor(user_id="seller-1", role="SELLER")
RIDER = Actor(user_id="rider-1", role="RIDER")
RIDER_2 = Actor(user_id="rider-2", role="RIDER")
STRANGER = Actor(user_id="buyer-2", role="BUYER")
ADMIN = Actor(user_id="admin-1", role="ADMIN")


@pytest.fixture
def market() -> Marketplace:
    m = Marketplace()
    for user_id in ("buyer-1", "buyer-2", "seller-1", "rider-1", "rider-2", "admin-1"):
        m.add_account(user_id)
    m.add_product("prod-1", "seller-1", price=naira(5000), quantity=5)
    return m


async def _initialized(market: Marketplace, quantity: int = 1) -> tuple[OrderResponse, str]:
    created = await market.orders.create_order(market.db, BUYER, "prod-1", quantity)
    init = await market.orders.initialize_payment(market.db, BUYER, created.id, "b@campus.test")
    return created, init.reference


class TestCreateOrder:
    async def test_snapshot_and_unpaid(self, market: Marketplace) -> None:
        result = await market.orders.create_order(market.db, BUYER, "prod-1", 2, "Hall 3")

        assert result.status == "PENDING"
        assert result.is_paid is False
        assert result.unit_price == 500000
        assert result.product_price == 1000000
        assert result.delivery_fee == 80000
        assert result.platform_commission == 100000
        assert result.total_amount == 1080000
        assert result.total_display == "₦10,800.00"
        assert result.order_number.startswith("BATA-")
        # Stock is only taken when the payment is confirmed
        assert market.store.products["prod-1"].quantity == 5

    async def test_unknown_product(self, market: Marketplace) -> None:
        with pytest.raises(ProductNotFoundError):
            await market.orders.create_order(market.db, BUYER, "nope", 1)

    async def test_self_purchase(self, market: Marketplace) -> None:
        with pytest.raises(SelfPurchaseError):
            await market.orders.create_order(market.db, SELLER, "prod-1", 1)

    async def test_inactive_product(self, market: Marketplace) -> None:
        market.add_product("prod-2", "seller-1", price=naira(100), is_active=False)
        with pytest.raises(ProductUnavailableError):
            await market.orders.create_order(market.db, BUYER, "prod-2", 1)

    async def test_out_of_stock(self, market: Marketplace) -> None:
        with pytest.raises(OutOfStockError):
            await market.orders.create_order(market.db, BUYER, "prod-1", 6)

    async def test_suspended_buyer(self, market: Marketplace) -> None:
        market.add_account(
            "buyer-1", is_suspended=True, suspended_until=utc_now() + timedelta(days=1)
        )
        with pytest.raises(AccountSuspendedError):
            await market.orders.create_order(market.db, BUYER, "prod-1", 1)

    async def test_lapsed_suspension_does_not_block(self, market: Marketplace) -> None:
        market.add_account(
            "buyer-1", is_suspended=True, suspended_until=utc_now() - timedelta(days=1)
        )
        result = await market.orders.create_order(market.db, BUYER, "prod-1", 1)
        assert result.status == "PENDING"


class TestInitializePayment:
    async def test_sends_total_and_metadata(self, market: Marketplace) -> None:
        created, reference = await _initialized(market)

        sent = market.gateway.initialized[-1]
        assert sent["amount"] == 580000
        assert sent["reference"] == reference
        assert reference.startswith(f"{created.order_number}-PAY-")
        assert sent["metadata"]["orderId"] == created.id
        assert sent["metadata"]["buyerId"] == "buyer-1"
        assert sent["metadata"]["deliveryFee"] == 80000

    async def test_other_user_cannot_pay(self, market: Marketplace) -> None:
        created = await market.orders.create_order(market.db, BUYER, "prod-1", 1)
        with pytest.raises(NotYourOrderError):
            await market.orders.initialize_payment(market.db, STRANGER, created.id, "x@y.test")

    async def test_paid_order_cannot_be_paid_again(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        with pytest.raises(PaymentAlreadyProcessedError):
            await market.orders.initialize_payment(market.db, BUYER, order.id, "b@campus.test")


class TestConfirmPayment:
    async def test_opens_seller_escrow(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")

        assert order.is_paid is True
        assert order.status == "PENDING"
        assert market.store.products["prod-1"].quantity == 4

        seller = market.account("seller-1")
        assert seller.pending_balance == 474000
        assert seller.available_balance == 0
        hold = market.entry(f"{order.order_number}-SELLER-ESCROW")
        assert hold.entry_type == "ESCROW"
        assert hold.escrow_status == "HELD"
        assert hold.amount == 474000

        payment = market.entry(order.payment_reference)
        assert payment.user_id == "buyer-1"
        assert payment.pool == "EXTERNAL"
        assert payment.entry_type == "DEBIT"
        assert payment.amount == -580000
        # Gateway money never touches the buyer's wallet
        assert market.account("buyer-1").available_balance == 0

        kinds = [n.kind for n in market.notifications_for("seller-1")]
        assert kinds == ["NEW_ORDER"]

    async def test_second_confirmation_is_rejected(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")

        with pytest.raises(PaymentAlreadyProcessedError):
            await market.orders.confirm_payment(market.db, order.payment_reference)

        assert market.account("seller-1").pending_balance == 474000
        assert market.store.products["prod-1"].quantity == 4

    async def test_in_flight_reference_is_rejected(self, market: Marketplace) -> None:
        created, reference = await _initialized(market)
        market.guard.in_flight.add(reference)

        with pytest.raises(PaymentAlreadyProcessedError):
            await market.orders.confirm_payment(market.db, reference)
        assert market.order(created.id).is_paid is False

    async def test_amount_mismatch(self, market: Marketplace) -> None:
        created, reference = await _initialized(market)
        metadata = market.gateway.initialized[-1]["metadata"]
        market.gateway.approve(reference, 579999, metadata)

        with pytest.raises(PaymentVerificationFailedError):
            await market.orders.confirm_payment(market.db, reference)

        assert market.order(created.id).is_paid is False
        assert market.account("seller-1").pending_balance == 0
        assert market.guard.in_flight == set()

    async def test_tampered_delivery_fee(self, market: Marketplace) -> None:
        created, reference = await _initialized(market)
        metadata = dict(market.gateway.initialized[-1]["metadata"])
        metadata["deliveryFee"] = 0
        metadata["totalAmount"] = 500000
        market.gateway.approve(reference, 500000, metadata)

        with pytest.raises(PaymentVerificationFailedError):
            await market.orders.confirm_payment(market.db, reference)

    async def test_incomplete_metadata(self, market: Marketplace) -> None:
        _, reference = await _initialized(market)
        market.gateway.approve(reference, 580000, {"productId": "prod-1"})

        with pytest.raises(PaymentVerificationFailedError):
            await market.orders.confirm_payment(market.db, reference)

    async def test_failed_charge(self, market: Marketplace) -> None:
        _, reference = await _initialized(market)
        market.gateway.approve(reference, 580000, market.gateway.initialized[-1]["metadata"])
        market.gateway.verifications[reference].status = "failed"

        with pytest.raises(PaymentVerificationFailedError):
            await market.orders.confirm_payment(market.db, reference)

    async def test_gateway_outage_moves_nothing(self, market: Marketplace) -> None:
        created, reference = await _initialized(market)
        market.gateway.verify_error = PaymentGatewayError("HTTP 503")

        with pytest.raises(PaymentGatewayError):
            await market.orders.confirm_payment(market.db, reference)

        assert market.order(created.id).is_paid is False
        assert market.store.ledger == []
        assert market.guard.in_flight == set()

    async def test_stock_sold_out_before_confirmation_rolls_back(
        self, market: Marketplace
    ) -> None:
        created, reference = await _initialized(market, quantity=2)
        market.gateway.approve(reference, 1080000, market.gateway.initialized[-1]["metadata"])
        market.store.products["prod-1"].quantity = 1
        market.store.commit()

        with pytest.raises(OutOfStockError):
            await market.orders.confirm_payment(market.db, reference)

        assert market.order(created.id).is_paid is False
        assert market.store.ledger == []
        assert market.db.rollbacks == 1

    async def test_payment_without_checkout_order_creates_one(
        self, market: Marketplace
    ) -> None:
        metadata = {
            "productId": "prod-1",
            "userId": "buyer-1",
            "productPrice": 500000,
            "deliveryFee": 80000,
            "totalAmount": 580000,
            "quantity": 1,
        }
        market.gateway.approve("DIRECT-REF-1", 580000, metadata)

        result = await market.orders.confirm_payment(market.db, "DIRECT-REF-1")

        assert result.is_paid is True
        assert result.payment_reference == "DIRECT-REF-1"
        assert result.buyer_id == "buyer-1"
        assert result.seller_id == "seller-1"
        assert result.platform_commission == 50000
        assert market.account("seller-1").pending_balance == 474000

    async def test_payment_without_checkout_order_uses_catalog_price(
        self, market: Marketplace
    ) -> None:
        # Self-consistent metadata, but for a fraction of the listed price
        metadata = {
            "productId": "prod-1",
            "userId": "buyer-1",
            "productPrice": 100,
            "deliveryFee": 80000,
            "totalAmount": 80100,
            "quantity": 1,
        }
        market.gateway.approve("DIRECT-REF-2", 80100, metadata)

        with pytest.raises(PaymentVerificationFailedError):
            await market.orders.confirm_payment(market.db, "DIRECT-REF-2")

        assert market.store.orders == {}
        assert market.store.ledger == []
        assert market.store.products["prod-1"].quantity == 5
        assert market.account("seller-1").pending_balance == 0

    async def test_payment_without_checkout_order_multiplies_quantity(
        self, market: Marketplace
    ) -> None:
        metadata = {
            "productId": "prod-1",
            "userId": "buyer-1",
            "productPrice": 1000000,
            "deliveryFee": 80000,
            "totalAmount": 1080000,
            "quantity": 2,
        }
        market.gateway.approve("DIRECT-REF-3", 1080000, metadata)

        result = await market.orders.confirm_payment(market.db, "DIRECT-REF-3")

        assert result.quantity == 2
        assert result.unit_price == 500000
        assert result.total_amount == 1080000
        assert market.store.products["prod-1"].quantity == 3


class TestAcceptOrder:
    async def test_opens_rider_escrow(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")

        result = await market.orders.accept_order(market.db, RIDER, order.id)

        assert result.status == "RIDER_ASSIGNED"
        assert result.rider_id == "rider-1"
        assert market.account("rider-1").pending_balance == 56000
        hold = market.entry(f"{order.order_number}-RIDER-ESCROW")
        assert hold.escrow_status == "HELD"
        assert [n.kind for n in market.notifications_for("buyer-1")] == ["RIDER_ASSIGNED"]

    async def test_concurrent_accepts_have_one_winner(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")

        results = await asyncio.gather(
            market.orders.accept_order(market.db, RIDER, order.id),
            market.orders.accept_order(market.db, RIDER_2, order.id),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, OrderResponse)]
        losers = [r for r in results if isinstance(r, AlreadyAssignedError)]
        assert len(winners) == 1
        assert len(losers) == 1
        total_held = (
            market.account("rider-1").pending_balance + market.account("rider-2").pending_balance
        )
        assert total_held == 56000
        assert market.order(order.id).rider_id == winners[0].rider_id

    async def test_unpaid_order_cannot_be_accepted(self, market: Marketplace) -> None:
        created = await market.orders.create_order(market.db, BUYER, "prod-1", 1)
        with pytest.raises(OrderNotPaidError):
            await market.orders.accept_order(market.db, RIDER, created.id)

    async def test_only_riders_accept(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        with pytest.raises(NotAuthorizedError):
            await market.orders.accept_order(market.db, SELLER, order.id)

    async def test_suspended_rider(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        market.add_account(
            "rider-1", is_suspended=True, suspended_until=utc_now() + timedelta(days=3)
        )
        with pytest.raises(AccountSuspendedError):
            await market.orders.accept_order(market.db, RIDER, order.id)


class TestUpdateDeliveryStatus:
    async def test_sequential_progress(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.orders.accept_order(market.db, RIDER, order.id)

        for status in ("PICKED_UP", "ON_THE_WAY", "DELIVERED"):
            result = await market.orders.update_delivery_status(
                market.db, RIDER, order.id, status
            )
            assert result.status == status

        stored = market.order(order.id)
        assert stored.picked_up_at is not None
        assert stored.delivered_at is not None
        updates = [n for n in market.notifications_for("buyer-1") if n.kind == "DELIVERY_UPDATE"]
        assert len(updates) == 3

    async def test_skipping_a_step_is_refused(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.orders.accept_order(market.db, RIDER, order.id)

        with pytest.raises(InvalidStatusTransitionError):
            await market.orders.update_delivery_status(market.db, RIDER, order.id, "DELIVERED")
        assert market.order(order.id).status == "RIDER_ASSIGNED"

    async def test_other_rider_is_refused(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.orders.accept_order(market.db, RIDER, order.id)

        with pytest.raises(NotYourDeliveryError):
            await market.orders.update_delivery_status(
                market.db, RIDER_2, order.id, "PICKED_UP"
            )


class TestConfirmDelivery:
    async def test_full_lifecycle_settles_every_party(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.deliver(RIDER, order.id)

        result = await market.orders.confirm_delivery(market.db, BUYER, order.id)

        assert result.seller_amount == 474000
        assert result.rider_amount == 56000
        assert result.platform_amount == 50000
        assert result.seller_display == "₦4,740.00"

        seller = market.account("seller-1")
        rider = market.account("rider-1")
        platform = market.account("PLATFORM_FEE")
        assert (seller.pending_balance, seller.available_balance) == (0, 474000)
        assert (rider.pending_balance, rider.available_balance) == (0, 56000)
        assert platform.available_balance == 50000
        assert seller.completed_orders == 1
        assert rider.completed_orders == 1
        assert market.account("buyer-1").completed_orders == 1

        assert market.order(order.id).status == "COMPLETED"
        for party in ("SELLER", "RIDER"):
            assert market.entry(f"{order.order_number}-{party}-ESCROW").escrow_status == "RELEASED"
            assert market.entry(f"{order.order_number}-{party}-CREDIT").pool == "AVAILABLE"
        assert market.ledger_violations() == []

    async def test_release_happens_once(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.deliver(RIDER, order.id)
        await market.orders.confirm_delivery(market.db, BUYER, order.id)

        with pytest.raises(AlreadyReleasedError):
            await market.orders.confirm_delivery(market.db, BUYER, order.id)

        assert market.account("seller-1").available_balance == 474000
        assert market.account("PLATFORM_FEE").available_balance == 50000

    async def test_concurrent_confirmations_release_once(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.deliver(RIDER, order.id)

        results = await asyncio.gather(
            market.orders.confirm_delivery(market.db, BUYER, order.id),
            market.orders.confirm_delivery(market.db, BUYER, order.id),
            return_exceptions=True,
        )

        settled = [r for r in results if isinstance(r, SettlementResponse)]
        refused = [r for r in results if isinstance(r, AlreadyReleasedError)]
        assert len(settled) == 1
        assert len(refused) == 1
        assert market.account("seller-1").available_balance == 474000
        assert market.account("rider-1").available_balance == 56000
        assert market.account("PLATFORM_FEE").available_balance == 50000
        assert market.account("seller-1").completed_orders == 1
        released = [
            n for n in market.notifications_for("seller-1") if n.kind == "PAYMENT_RELEASED"
        ]
        assert len(released) == 1
        assert market.ledger_violations() == []

    async def test_not_delivered_yet(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.orders.accept_order(market.db, RIDER, order.id)

        with pytest.raises(NotDeliveredError):
            await market.orders.confirm_delivery(market.db, BUYER, order.id)
        assert market.account("seller-1").pending_balance == 474000

    async def test_only_buyer_confirms(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.deliver(RIDER, order.id)

        with pytest.raises(NotYourOrderError):
            await market.orders.confirm_delivery(market.db, SELLER, order.id)

    async def test_open_dispute_blocks_release(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        await market.deliver(RIDER, order.id)
        market.store.orders[order.id].is_disputed = True
        market.store.commit()

        with pytest.raises(OrderUnderDisputeError):
            await market.orders.confirm_delivery(market.db, BUYER, order.id)
        assert market.account("seller-1").available_balance == 0
        assert market.order(order.id).status == "DELIVERED"


class TestReads:
    async def test_participants_and_admin_can_read(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")

        for actor in (BUYER, SELLER, ADMIN):
            result = await market.orders.get_order(market.db, actor, order.id)
            assert result.id == order.id

        with pytest.raises(NotYourOrderError):
            await market.orders.get_order(market.db, STRANGER, order.id)

    async def test_list_orders_pages_newest_first(self, market: Marketplace) -> None:
        ids = [
            (await market.orders.create_order(market.db, BUYER, "prod-1", 1)).id
            for _ in range(3)
        ]

        first = await market.orders.list_orders(market.db, BUYER, "BUYER", None, None, 2)
        assert [o.id for o in first.items] == [ids[2], ids[1]]
        assert first.has_more is True
        assert first.next_cursor is not None

        second = await market.orders.list_orders(
            market.db, BUYER, "BUYER", None, first.next_cursor, 2
        )
        assert [o.id for o in second.items] == [ids[0]]
        assert second.has_more is False
        assert second.next_cursor is None

    async def test_list_orders_as_seller(self, market: Marketplace) -> None:
        await market.orders.create_order(market.db, BUYER, "prod-1", 1)
        result = await market.orders.list_orders(market.db, SELLER, "SELLER", None, None, 10)
        assert len(result.items) == 1
        empty = await market.orders.list_orders(market.db, SELLER, "BUYER", None, None, 10)
        assert empty.items == []

    async def test_available_orders_are_paid_and_unassigned(
        self, market: Marketplace
    ) -> None:
        await market.orders.create_order(market.db, BUYER, "prod-1", 1)  # unpaid
        paid = await market.checkout(BUYER, "prod-1")
        taken = await market.checkout(BUYER, "prod-1")
        await market.orders.accept_order(market.db, RIDER, taken.id)

        result = await market.orders.list_available_orders(market.db, RIDER_2, 10)
        assert [o.id for o in result] == [paid.id]

        with pytest.raises(NotAuthorizedError):
            await market.orders.list_available_orders(market.db, BUYER, 10)
