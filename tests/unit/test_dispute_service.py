"""Unit tests for DisputeService: opening, messaging and resolving with refunds."""

from datetime import timedelta

import pytest

from config.settings import settings
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.errors import (
    AlreadyDisputedError,
    DisputeAlreadyResolvedError,
    DisputeNotEligibleError,
    InsufficientBalanceError,
    InvalidRefundAmountError,
    InvalidResolutionStatusError,
    NotAuthorizedError,
    NotYourOrderError,
    RefundAfterReleaseError,
)
from src.cm_common.money import naira
from src.cm_order.domain.models import Order
from src.cm_payment.domain.models import BankDetails
from tests.unit.fakes import Marketplace

BUYER = Actor(user_id="buyer-1", role="BUYER")
SELLER = Actor(user_id="seller-1", role="SELLER")
RIDER = Actor(user_id="rider-1", role="RIDER")
STRANGER = Actor(user_id="buyer-2", role="BUYER")
ADMIN = Actor(user_id="admin-1", role="ADMIN")


@pytest.fixture
def market() -> Marketplace:
    m = Marketplace()
    for user_id in ("buyer-1", "buyer-2", "seller-1", "rider-1", "admin-1"):
        m.add_account(user_id)
    m.add_product("prod-1", "seller-1", price=naira(5000), quantity=5)
    return m


async def _delivered(market: Marketplace) -> Order:
    order = await market.checkout(BUYER, "prod-1")
    await market.deliver(RIDER, order.id)
    return market.order(order.id)


async def _completed(market: Marketplace) -> Order:
    order = await _delivered(market)
    await market.orders.confirm_delivery(market.db, BUYER, order.id)
    return market.order(order.id)


async def _open(market: Marketplace, order: Order) -> str:
    dispute = await market.disputes.open_dispute(
        market.db, BUYER, order.id, "Item arrived broken", ["https://img.test/1.jpg"]
    )
    return dispute.id


class TestOpenDispute:
    async def test_flags_order_and_notifies_seller(self, market: Marketplace) -> None:
        order = await _delivered(market)

        result = await market.disputes.open_dispute(
            market.db, BUYER, order.id, "Item arrived broken", ["https://img.test/1.jpg"]
        )

        assert result.status == "OPEN"
        assert result.buyer_evidence == ["https://img.test/1.jpg"]
        assert market.order(order.id).is_disputed is True
        assert "DISPUTE_OPENED" in [n.kind for n in market.notifications_for("seller-1")]
        messages = await market.disputes.list_messages(market.db, BUYER, result.id)
        assert [(m.sender_type, m.message) for m in messages] == [
            ("BUYER", "Item arrived broken")
        ]

    async def test_undelivered_order_is_not_eligible(self, market: Marketplace) -> None:
        order = await market.checkout(BUYER, "prod-1")
        with pytest.raises(DisputeNotEligibleError):
            await market.disputes.open_dispute(market.db, BUYER, order.id, "late", [])
        assert market.order(order.id).is_disputed is False

    async def test_only_the_buyer_opens(self, market: Marketplace) -> None:
        order = await _delivered(market)
        with pytest.raises(NotYourOrderError):
            await market.disputes.open_dispute(market.db, SELLER, order.id, "x", [])

    async def test_one_dispute_per_order(self, market: Marketplace) -> None:
        order = await _delivered(market)
        await _open(market, order)
        with pytest.raises(AlreadyDisputedError):
            await market.disputes.open_dispute(market.db, BUYER, order.id, "again", [])

    async def test_completed_order_can_be_disputed(self, market: Marketplace) -> None:
        order = await _completed(market)
        dispute_id = await _open(market, order)
        assert market.store.disputes[dispute_id].status == "OPEN"


class TestRespond:
    async def test_seller_reply_moves_to_review(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        msg = await market.disputes.respond(
            market.db, SELLER, dispute_id, "It left intact", [], ["https://img.test/s.jpg"]
        )

        assert msg.sender_type == "SELLER"
        stored = market.store.disputes[dispute_id]
        assert stored.status == "UNDER_REVIEW"
        assert stored.seller_evidence == ["https://img.test/s.jpg"]
        assert "DISPUTE_MESSAGE" in [n.kind for n in market.notifications_for("buyer-1")]

    async def test_buyer_reply_keeps_status(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        await market.disputes.respond(market.db, BUYER, dispute_id, "More photos", [], [])
        assert market.store.disputes[dispute_id].status == "OPEN"

    async def test_stranger_cannot_see_or_reply(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        with pytest.raises(NotAuthorizedError):
            await market.disputes.respond(market.db, STRANGER, dispute_id, "hi", [], [])
        with pytest.raises(NotAuthorizedError):
            await market.disputes.get_dispute(market.db, STRANGER, dispute_id)

    async def test_resolved_dispute_is_closed_for_messages(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)
        await market.disputes.resolve(market.db, ADMIN, dispute_id, "DISMISSED", "No evidence")

        with pytest.raises(DisputeAlreadyResolvedError):
            await market.disputes.respond(market.db, BUYER, dispute_id, "wait", [], [])


class TestResolveBeforeRelease:
    async def test_full_refund_comes_out_of_seller_escrow(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        result = await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "Broken on arrival",
            refund_amount=474000,
        )

        assert result.status == "RESOLVED_BUYER_FAVOR"
        assert result.refund_amount == 474000
        assert result.resolved_by == "admin-1"
        assert market.account("buyer-1").available_balance == 474000
        assert market.account("seller-1").pending_balance == 0
        stored = market.order(order.id)
        assert stored.refunded_amount == 474000
        assert stored.is_disputed is False
        seller_holds = [
            e for e in market.ledger_for("seller-1") if e.entry_type == "ESCROW"
        ]
        assert {e.escrow_status for e in seller_holds} == {"REVERSED"}

        settlement = await market.orders.confirm_delivery(market.db, BUYER, order.id)

        assert settlement.seller_amount == 0
        assert settlement.rider_amount == 56000
        assert settlement.platform_amount == 50000
        assert settlement.refunded_amount == 474000
        assert market.account("seller-1").available_balance == 0
        assert market.account("rider-1").available_balance == 56000
        assert market.ledger_violations() == []

    async def test_partial_refund_reduces_seller_release(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "Partly damaged",
            refund_amount=100000,
        )
        assert market.account("seller-1").pending_balance == 374000

        settlement = await market.orders.confirm_delivery(market.db, BUYER, order.id)

        assert settlement.seller_amount == 374000
        assert market.account("seller-1").available_balance == 374000
        assert market.account("buyer-1").available_balance == 100000
        assert market.ledger_violations() == []

    async def test_refund_cannot_exceed_seller_share(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        with pytest.raises(InvalidRefundAmountError):
            await market.disputes.resolve(
                market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "x",
                refund_amount=474001,
            )
        assert market.store.disputes[dispute_id].status == "OPEN"
        assert market.order(order.id).is_disputed is True

    async def test_seller_favor_clears_block_without_refund(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_SELLER_FAVOR", "Buyer misused it"
        )
        settlement = await market.orders.confirm_delivery(market.db, BUYER, order.id)
        assert settlement.seller_amount == 474000


class TestResolveAfterRelease:
    async def test_clawback_from_seller_available(self, market: Marketplace) -> None:
        order = await _completed(market)
        dispute_id = await _open(market, order)

        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "Counterfeit",
            refund_amount=100000,
        )

        assert market.account("seller-1").available_balance == 374000
        assert market.account("buyer-1").available_balance == 100000
        clawback = market.entry(f"DISPUTE-CLAWBACK-{dispute_id}")
        assert clawback.amount == -100000
        assert clawback.entry_type == "DEBIT"
        assert market.order(order.id).refunded_amount == 100000
        assert market.ledger_violations() == []

    async def test_reject_policy_refuses_refund(
        self, market: Marketplace, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "DISPUTE_POST_RELEASE_REFUND", "REJECT")
        order = await _completed(market)
        dispute_id = await _open(market, order)

        with pytest.raises(RefundAfterReleaseError):
            await market.disputes.resolve(
                market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "x",
                refund_amount=100000,
            )

        assert market.store.disputes[dispute_id].status == "OPEN"
        assert market.account("seller-1").available_balance == 474000

    async def test_withdrawn_seller_funds_block_clawback(self, market: Marketplace) -> None:
        order = await _completed(market)
        dispute_id = await _open(market, order)
        await market.wallets.withdraw(
            market.db,
            SELLER,
            450000,
            BankDetails(account_name="Ada Obi", account_number="0123456789", bank_code="058"),
        )

        with pytest.raises(InsufficientBalanceError):
            await market.disputes.resolve(
                market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "x",
                refund_amount=100000,
            )

        assert market.account("buyer-1").available_balance == 0
        assert market.store.disputes[dispute_id].status == "OPEN"


class TestResolveValidation:
    async def test_admin_only(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)
        with pytest.raises(NotAuthorizedError):
            await market.disputes.resolve(market.db, SELLER, dispute_id, "DISMISSED", "x")

    @pytest.mark.parametrize("status", ["OPEN", "UNDER_REVIEW", "SETTLED"])
    async def test_non_resolution_status(self, market: Marketplace, status: str) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)
        with pytest.raises(InvalidResolutionStatusError):
            await market.disputes.resolve(market.db, ADMIN, dispute_id, status, "x")

    async def test_refund_only_in_buyer_favor(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)
        with pytest.raises(InvalidRefundAmountError):
            await market.disputes.resolve(
                market.db, ADMIN, dispute_id, "RESOLVED_COMPROMISE", "x", refund_amount=1000
            )

    async def test_resolves_once(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)
        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "x", refund_amount=50000
        )

        with pytest.raises(DisputeAlreadyResolvedError):
            await market.disputes.resolve(
                market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "x", refund_amount=50000
            )
        assert market.account("buyer-1").available_balance == 50000


class TestResolvePenalties:
    async def test_seller_ban_in_buyer_favor(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_BUYER_FAVOR", "Fake item",
            penalize_seller=True,
        )

        seller = market.account("seller-1")
        assert seller.penalty_points == 3
        assert seller.warning_count == 1
        assert seller.is_suspended is True
        assert seller.suspended_until is not None
        assert seller.suspended_until - utc_now() <= timedelta(days=1)
        penalty = market.store.penalties[0]
        assert penalty.action == "TEMP_BAN_1DAY"
        assert penalty.dispute_id == dispute_id
        assert penalty.issued_by == "admin-1"

    async def test_seller_warning_otherwise(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        await market.disputes.resolve(
            market.db, ADMIN, dispute_id, "RESOLVED_COMPROMISE", "Both at fault",
            penalize_seller=True, penalize_buyer=True,
        )

        assert market.account("seller-1").penalty_points == 2
        assert market.account("seller-1").is_suspended is False
        buyer = market.account("buyer-1")
        assert buyer.penalty_points == 2
        assert buyer.warning_count == 1
        assert {p.action for p in market.store.penalties} == {"WARNING"}


class TestListDisputes:
    async def test_admin_sees_all_parties_see_their_own(self, market: Marketplace) -> None:
        order = await _delivered(market)
        dispute_id = await _open(market, order)

        assert [d.id for d in await market.disputes.list_disputes(market.db, ADMIN, None, 50)] == [
            dispute_id
        ]
        seller_view = await market.disputes.list_disputes(market.db, SELLER, None, 50)
        assert [d.id for d in seller_view] == [dispute_id]
        assert await market.disputes.list_disputes(market.db, STRANGER, None, 50) == []
