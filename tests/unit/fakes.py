"""In-memory repositories and gateways for service-level unit tests.

Every fake honours its repository Protocol, including the compare-and-set
guards of the SQL it stands in for. All fakes share one FakeStore; the
FakeSession snapshots the store on commit and restores the snapshot on
rollback, so a test can assert that a failed operation left no partial
effect behind.
"""

import asyncio
import copy
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any

from src.cm_account.domain.constants import PLATFORM_ACCOUNT_ID
from src.cm_account.domain.models import Account, LedgerEntry, Withdrawal
from src.cm_account.application.service import AccountApplicationService
from src.cm_catalog.domain.models import Product
from src.cm_common.actor import Actor
from src.cm_common.enums import (
    OPEN_REPORT_STATUSES,
    EscrowStatus,
    LedgerEntryType,
    LedgerPool,
    OrderStatus,
)
from src.cm_common.errors import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InternalError,
    PaymentVerificationFailedError,
)
from src.cm_dispute.application.penalty_service import PenaltyService
from src.cm_dispute.application.service import DisputeService
from src.cm_dispute.application.report_service import ReportService
from src.cm_dispute.domain.models import Dispute, DisputeMessage, Penalty, Report
from src.cm_escrow.application.engine import EscrowEngine
from src.cm_notification.application.service import NotificationService
from src.cm_notification.domain.models import Notification
from src.cm_order.application.service import OrderApplicationService
from src.cm_order.domain.models import Order
from src.cm_payment.domain.models import (
    BankDetails,
    PaymentAuthorization,
    PaymentVerification,
    TransferResult,
)
from src.cm_review.application.service import ReviewService
from src.cm_review.domain.models import Review


def _v(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ---------------------------------------------------------------------------
# Store + session
# ---------------------------------------------------------------------------


class FakeStore:
    _TABLES = (
        "accounts",
        "ledger",
        "products",
        "orders",
        "disputes",
        "messages",
        "penalties",
        "notifications",
        "withdrawals",
        "reviews",
        "reports",
    )

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.ledger: list[LedgerEntry] = []
        self.products: dict[str, Product] = {}
        self.orders: dict[str, Order] = {}
        self.disputes: dict[str, Dispute] = {}
        self.messages: list[DisputeMessage] = []
        self.penalties: list[Penalty] = []
        self.notifications: list[Notification] = []
        self.withdrawals: dict[str, Withdrawal] = {}
        self.reviews: list[Review] = []
        self.reports: dict[str, Report] = {}
        self._committed: dict[str, Any] = {}
        self.commit()

    def commit(self) -> None:
        self._committed = copy.deepcopy({t: getattr(self, t) for t in self._TABLES})

    def rollback(self) -> None:
        for table, value in copy.deepcopy(self._committed).items():
            setattr(self, table, value)


class FakeSession:
    """Stands in for AsyncSession: only commit/rollback are used by services."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.store.commit()
        self.commits += 1

    async def rollback(self) -> None:
        self.store.rollback()
        self.rollbacks += 1


# ---------------------------------------------------------------------------
# Accounts + ledger
# ---------------------------------------------------------------------------


class InMemoryAccountRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    def _require(self, user_id: str) -> Account:
        account = self.store.accounts.get(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    def _insert_ledger(self, **values: Any) -> LedgerEntry:
        reference = values["reference"]
        if any(e.reference == reference for e in self.store.ledger):
            raise InternalError(f"duplicate ledger reference {reference}")
        entry = LedgerEntry(
            id=len(self.store.ledger) + 1,
            created_at=datetime.now(),
            **{k: _v(v) for k, v in values.items()},
        )
        self.store.ledger.append(entry)
        return replace(entry)

    async def get_account(self, db: Any, user_id: str) -> Account | None:
        account = self.store.accounts.get(user_id)
        return replace(account) if account else None

    async def lock_account(self, db: Any, user_id: str) -> Account:
        return replace(self._require(user_id))

    async def apply_delta(
        self,
        db: Any,
        user_id: str,
        pool: str,
        amount: int,
        entry_type: str,
        reference: str,
        description: str,
        order_id: str | None = None,
        escrow_status: str | None = None,
    ) -> tuple[Account, LedgerEntry]:
        account = self._require(user_id)
        if pool == LedgerPool.AVAILABLE:
            if account.available_balance + amount < 0:
                raise InsufficientBalanceError(-amount, account.available_balance)
            account.available_balance += amount
            after = account.available_balance
        elif pool == LedgerPool.PENDING:
            if account.pending_balance + amount < 0:
                raise InternalError(f"Pending balance of {user_id} would go negative")
            account.pending_balance += amount
            after = account.pending_balance
        else:
            raise InternalError(f"apply_delta cannot move the {pool} pool")
        account.version += 1
        entry = self._insert_ledger(
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
        return replace(account), entry

    async def record_external_entry(
        self,
        db: Any,
        user_id: str,
        amount: int,
        entry_type: str,
        reference: str,
        description: str,
        order_id: str | None = None,
    ) -> LedgerEntry:
        account = self._require(user_id)
        return self._insert_ledger(
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
        db: Any,
        user_id: str,
        amount: int,
        reference: str,
        description: str,
        order_id: str,
    ) -> tuple[Account, LedgerEntry]:
        account = self._require(user_id)
        if account.pending_balance < amount:
            raise InternalError(f"Cannot release {amount} kobo from {user_id}")
        account.pending_balance -= amount
        account.available_balance += amount
        entry = self._insert_ledger(
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
        return replace(account), entry

    async def settle_escrow_holds(
        self, db: Any, user_id: str, order_id: str, new_status: str
    ) -> tuple[int, int]:
        count, net = 0, 0
        for entry in self.store.ledger:
            if (
                entry.user_id == user_id
                and entry.order_id == order_id
                and entry.entry_type == LedgerEntryType.ESCROW
                and entry.escrow_status == EscrowStatus.HELD
            ):
                entry.escrow_status = _v(new_status)
                count += 1
                net += entry.amount
        return count, net

    async def increment_completed_orders(self, db: Any, user_ids: list[str]) -> None:
        for user_id in user_ids:
            if user_id in self.store.accounts:
                self.store.accounts[user_id].completed_orders += 1

    async def add_penalty(
        self,
        db: Any,
        user_id: str,
        points: int,
        is_warning: bool,
        suspended_until: datetime | None,
    ) -> Account:
        account = self._require(user_id)
        account.penalty_points += points
        if is_warning:
            account.warning_count += 1
            account.last_warning_at = datetime.now()
        if suspended_until is not None:
            account.is_suspended = True
            if account.suspended_until is None or account.suspended_until < suspended_until:
                account.suspended_until = suspended_until
        return replace(account)

    async def suspend(self, db: Any, user_id: str, suspended_until: datetime) -> Account:
        account = self._require(user_id)
        account.is_suspended = True
        if account.suspended_until is None or account.suspended_until < suspended_until:
            account.suspended_until = suspended_until
        return replace(account)

    async def save_trust(
        self, db: Any, user_id: str, trust_level: str, trust_downgrades: int
    ) -> Account:
        account = self._require(user_id)
        account.trust_level = trust_level
        account.trust_downgrades = trust_downgrades
        return replace(account)

    async def save_rating_stats(
        self, db: Any, user_id: str, avg_rating: float, total_reviews: int
    ) -> Account:
        account = self._require(user_id)
        account.avg_rating = round(avg_rating, 2)
        account.total_reviews = total_reviews
        return replace(account)

    async def list_ledger_entries(
        self,
        db: Any,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        rows = [
            replace(e)
            for e in reversed(self.store.ledger)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        return rows[:limit]


class InMemoryWithdrawalRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, withdrawal: Withdrawal) -> Withdrawal:
        if withdrawal.reference in self.store.withdrawals:
            raise InternalError(f"duplicate withdrawal {withdrawal.reference}")
        if withdrawal.idempotency_key is not None and any(
            w.user_id == withdrawal.user_id and w.idempotency_key == withdrawal.idempotency_key
            for w in self.store.withdrawals.values()
        ):
            raise InternalError(f"duplicate idempotency key {withdrawal.idempotency_key}")
        stored = replace(withdrawal, status=_v(withdrawal.status), created_at=datetime.now())
        self.store.withdrawals[withdrawal.reference] = stored
        return replace(stored)

    async def get_by_reference(self, db: Any, reference: str) -> Withdrawal | None:
        withdrawal = self.store.withdrawals.get(reference)
        return replace(withdrawal) if withdrawal else None

    async def get_by_key(
        self, db: Any, user_id: str, idempotency_key: str
    ) -> Withdrawal | None:
        for w in self.store.withdrawals.values():
            if w.user_id == user_id and w.idempotency_key == idempotency_key:
                return replace(w)
        return None

    async def mark_sent(
        self, db: Any, reference: str, transfer_code: str, transfer_status: str
    ) -> Withdrawal | None:
        withdrawal = self.store.withdrawals.get(reference)
        if withdrawal is None or withdrawal.status != "PENDING":
            return None
        withdrawal.status = "SENT"
        withdrawal.transfer_code = transfer_code
        withdrawal.transfer_status = transfer_status
        return replace(withdrawal)

    async def mark_failed(self, db: Any, reference: str, reason: str) -> Withdrawal | None:
        withdrawal = self.store.withdrawals.get(reference)
        if withdrawal is None or withdrawal.status != "PENDING":
            return None
        withdrawal.status = "FAILED"
        withdrawal.failure_reason = reason
        return replace(withdrawal)

    async def list_for_user(self, db: Any, user_id: str, limit: int) -> list[Withdrawal]:
        rows = [replace(w) for w in self.store.withdrawals.values() if w.user_id == user_id]
        return list(reversed(rows))[:limit]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class InMemoryProductRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, product: Product) -> Product:
        self.store.products[product.id] = replace(product)
        return replace(product)

    async def get_by_id(self, db: Any, product_id: str) -> Product | None:
        product = self.store.products.get(product_id)
        return replace(product) if product else None

    async def decrement_stock(self, db: Any, product_id: str, quantity: int) -> Product | None:
        product = self.store.products.get(product_id)
        if product is None or not product.is_active or product.quantity < quantity:
            return None
        product.quantity -= quantity
        return replace(product)

    async def restock(self, db: Any, product_id: str, quantity: int) -> Product | None:
        product = self.store.products.get(product_id)
        if product is None:
            return None
        product.quantity += quantity
        product.is_active = True
        return replace(product)

    async def set_active(self, db: Any, product_id: str, is_active: bool) -> Product | None:
        product = self.store.products.get(product_id)
        if product is None:
            return None
        product.is_active = is_active
        return replace(product)

    async def list_products(
        self,
        db: Any,
        seller_id: str | None,
        active_only: bool,
        cursor_id: str | None,
        limit: int,
    ) -> list[Product]:
        rows = sorted(self.store.products.values(), key=lambda p: p.id, reverse=True)
        rows = [
            replace(p)
            for p in rows
            if (seller_id is None or p.seller_id == seller_id)
            and (not active_only or p.is_purchasable)
            and (cursor_id is None or p.id < cursor_id)
        ]
        return rows[:limit]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class InMemoryOrderRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    def _get(self, order_id: str) -> Order | None:
        return self.store.orders.get(order_id)

    async def insert(self, db: Any, order: Order) -> Order:
        if order.id in self.store.orders:
            raise InternalError(f"duplicate order id {order.id}")
        if order.payment_reference is not None and any(
            o.payment_reference == order.payment_reference for o in self.store.orders.values()
        ):
            raise InternalError(f"duplicate payment reference {order.payment_reference}")
        stored = replace(order, status=_v(order.status), created_at=datetime.now())
        self.store.orders[order.id] = stored
        return replace(stored)

    async def get_by_id(self, db: Any, order_id: str) -> Order | None:
        order = self._get(order_id)
        return replace(order) if order else None

    async def get_for_update(self, db: Any, order_id: str) -> Order | None:
        order = await self.get_by_id(db, order_id)
        # Yield before returning so concurrent callers all read the row before any
        # of them writes; the compare-and-set in the write then decides the race
        await asyncio.sleep(0)
        return order

    async def get_by_payment_reference(self, db: Any, reference: str) -> Order | None:
        for order in self.store.orders.values():
            if order.payment_reference == reference:
                return replace(order)
        return None

    async def mark_paid(self, db: Any, order_id: str, reference: str) -> Order | None:
        order = self._get(order_id)
        if order is None or order.is_paid or order.payment_reference is not None:
            return None
        order.is_paid = True
        order.payment_reference = reference
        return replace(order)

    async def assign_rider(self, db: Any, order_id: str, rider_id: str) -> Order | None:
        order = self._get(order_id)
        if (
            order is None
            or order.status != OrderStatus.PENDING
            or order.rider_id is not None
            or not order.is_paid
        ):
            return None
        order.rider_id = rider_id
        order.status = OrderStatus.RIDER_ASSIGNED.value
        order.rider_assigned_at = datetime.now()
        return replace(order)

    async def advance_status(
        self, db: Any, order_id: str, rider_id: str, from_status: str, to_status: str
    ) -> Order | None:
        order = self._get(order_id)
        if order is None or order.rider_id != rider_id or order.status != from_status:
            return None
        order.status = _v(to_status)
        if order.status == OrderStatus.PICKED_UP and order.picked_up_at is None:
            order.picked_up_at = datetime.now()
        if order.status == OrderStatus.DELIVERED and order.delivered_at is None:
            order.delivered_at = datetime.now()
        return replace(order)

    async def mark_completed(self, db: Any, order_id: str) -> Order | None:
        order = self._get(order_id)
        if order is None or order.status != OrderStatus.DELIVERED or order.is_disputed:
            return None
        order.status = OrderStatus.COMPLETED.value
        order.completed_at = datetime.now()
        return replace(order)

    async def set_disputed(self, db: Any, order_id: str, is_disputed: bool) -> Order | None:
        order = self._get(order_id)
        if order is None:
            return None
        order.is_disputed = is_disputed
        return replace(order)

    async def add_refund(self, db: Any, order_id: str, amount: int) -> Order | None:
        order = self._get(order_id)
        if order is None:
            return None
        order.refunded_amount += amount
        return replace(order)

    async def list_for_user(
        self,
        db: Any,
        user_id: str,
        as_role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        column = {"BUYER": "buyer_id", "SELLER": "seller_id", "RIDER": "rider_id"}[as_role]
        rows = sorted(self.store.orders.values(), key=lambda o: o.id, reverse=True)
        rows = [
            replace(o)
            for o in rows
            if getattr(o, column) == user_id
            and (status is None or o.status == status)
            and (cursor_id is None or o.id < cursor_id)
        ]
        return rows[:limit]

    async def list_available(self, db: Any, limit: int) -> list[Order]:
        rows = sorted(self.store.orders.values(), key=lambda o: o.id)
        return [
            replace(o)
            for o in rows
            if o.status == OrderStatus.PENDING and o.rider_id is None and o.is_paid
        ][:limit]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class InMemoryNotificationRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(
        self,
        db: Any,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        order_id: str | None,
    ) -> Notification:
        notification = Notification(
            id=len(self.store.notifications) + 1,
            user_id=user_id,
            kind=_v(kind),
            title=title,
            message=message,
            order_id=order_id,
            created_at=datetime.now(),
        )
        self.store.notifications.append(notification)
        return replace(notification)

    async def list_for_user(
        self, db: Any, user_id: str, unread_only: bool, limit: int
    ) -> list[Notification]:
        rows = [
            replace(n)
            for n in reversed(self.store.notifications)
            if n.user_id == user_id and (not unread_only or not n.is_read)
        ]
        return rows[:limit]

    async def mark_read(self, db: Any, user_id: str, notification_id: int) -> bool:
        for n in self.store.notifications:
            if n.id == notification_id and n.user_id == user_id:
                n.is_read = True
                return True
        return False


# ---------------------------------------------------------------------------
# Disputes, penalties + reports
# ---------------------------------------------------------------------------


class InMemoryDisputeRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, dispute: Dispute) -> Dispute | None:
        if any(d.order_id == dispute.order_id for d in self.store.disputes.values()):
            return None
        stored = replace(dispute, status=_v(dispute.status), created_at=datetime.now())
        self.store.disputes[dispute.id] = stored
        return replace(stored)

    async def get_by_id(self, db: Any, dispute_id: str) -> Dispute | None:
        dispute = self.store.disputes.get(dispute_id)
        return replace(dispute) if dispute else None

    async def get_for_update(self, db: Any, dispute_id: str) -> Dispute | None:
        return await self.get_by_id(db, dispute_id)

    async def get_by_order(self, db: Any, order_id: str) -> Dispute | None:
        for d in self.store.disputes.values():
            if d.order_id == order_id:
                return replace(d)
        return None

    async def add_message(
        self,
        db: Any,
        dispute_id: str,
        sender_id: str,
        sender_type: str,
        message: str,
        attachments: list[str],
    ) -> DisputeMessage:
        msg = DisputeMessage(
            id=len(self.store.messages) + 1,
            dispute_id=dispute_id,
            sender_id=sender_id,
            sender_type=_v(sender_type),
            message=message,
            attachments=list(attachments),
            created_at=datetime.now(),
        )
        self.store.messages.append(msg)
        return replace(msg)

    async def list_messages(self, db: Any, dispute_id: str) -> list[DisputeMessage]:
        return [replace(m) for m in self.store.messages if m.dispute_id == dispute_id]

    async def record_seller_response(
        self, db: Any, dispute_id: str, seller_evidence: list[str]
    ) -> Dispute | None:
        dispute = self.store.disputes.get(dispute_id)
        if dispute is None or dispute.is_resolved:
            return None
        if dispute.status == "OPEN":
            dispute.status = "UNDER_REVIEW"
        if seller_evidence:
            dispute.seller_evidence = list(seller_evidence)
        return replace(dispute)

    async def resolve(
        self,
        db: Any,
        dispute_id: str,
        status: str,
        resolution: str,
        refund_amount: int,
        resolved_by: str,
    ) -> Dispute | None:
        dispute = self.store.disputes.get(dispute_id)
        if dispute is None or dispute.is_resolved:
            return None
        dispute.status = _v(status)
        dispute.resolution = resolution
        dispute.refund_amount = refund_amount
        dispute.resolved_by = resolved_by
        dispute.resolved_at = datetime.now()
        return replace(dispute)

    async def list_for_user(
        self, db: Any, user_id: str, status: str | None, limit: int
    ) -> list[Dispute]:
        return [
            replace(d)
            for d in self.store.disputes.values()
            if d.involves(user_id) and (status is None or d.status == status)
        ][:limit]

    async def list_all(self, db: Any, status: str | None, limit: int) -> list[Dispute]:
        return [
            replace(d)
            for d in self.store.disputes.values()
            if status is None or d.status == status
        ][:limit]


class InMemoryPenaltyRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, penalty: Penalty) -> Penalty | None:
        for p in self.store.penalties:
            if p.user_id != penalty.user_id:
                continue
            if penalty.dispute_id is not None and p.dispute_id == penalty.dispute_id:
                return None
            if penalty.report_id is not None and p.report_id == penalty.report_id:
                return None
        stored = replace(
            penalty,
            id=len(self.store.penalties) + 1,
            action=_v(penalty.action),
            created_at=datetime.now(),
        )
        self.store.penalties.append(stored)
        return replace(stored)

    async def list_penalties(self, db: Any, user_id: str | None, limit: int) -> list[Penalty]:
        return [
            replace(p)
            for p in reversed(self.store.penalties)
            if user_id is None or p.user_id == user_id
        ][:limit]


class InMemoryReportRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, report: Report) -> Report:
        stored = replace(report, status=_v(report.status), created_at=datetime.now())
        self.store.reports[stored.id] = stored
        return replace(stored)

    async def get_by_id(self, db: Any, report_id: str) -> Report | None:
        report = self.store.reports.get(report_id)
        return replace(report) if report else None

    async def get_for_update(self, db: Any, report_id: str) -> Report | None:
        return await self.get_by_id(db, report_id)

    async def mark_under_review(self, db: Any, report_id: str) -> Report | None:
        report = self.store.reports.get(report_id)
        if report is None or report.status != "PENDING":
            return None
        report.status = "UNDER_REVIEW"
        return replace(report)

    async def close(
        self,
        db: Any,
        report_id: str,
        status: str,
        action: str | None,
        admin_notes: str,
        resolved_by: str,
    ) -> Report | None:
        report = self.store.reports.get(report_id)
        if report is None or report.status not in OPEN_REPORT_STATUSES:
            return None
        report.status = _v(status)
        report.action = _v(action)
        report.admin_notes = admin_notes
        report.resolved_by = resolved_by
        report.resolved_at = datetime.now()
        return replace(report)

    async def list_for_reporter(self, db: Any, reporter_id: str, limit: int) -> list[Report]:
        return [
            replace(r) for r in self.store.reports.values() if r.reporter_id == reporter_id
        ][:limit]

    async def list_all(
        self, db: Any, status: str | None, report_type: str | None, limit: int
    ) -> list[Report]:
        return [
            replace(r)
            for r in self.store.reports.values()
            if (status is None or r.status == status)
            and (report_type is None or r.report_type == report_type)
        ][:limit]


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class InMemoryReviewRepository:
    def __init__(self, store: FakeStore) -> None:
        self.store = store

    async def insert(self, db: Any, review: Review) -> Review | None:
        for r in self.store.reviews:
            if r.order_id == review.order_id and r.review_type == _v(review.review_type):
                return None
        stored = replace(
            review,
            id=len(self.store.reviews) + 1,
            review_type=_v(review.review_type),
            created_at=datetime.now(),
        )
        self.store.reviews.append(stored)
        return replace(stored)

    async def rating_stats(self, db: Any, reviewee_id: str) -> tuple[float, int]:
        ratings = [r.rating for r in self.store.reviews if r.reviewee_id == reviewee_id]
        if not ratings:
            return 0.0, 0
        return round(sum(ratings) / len(ratings), 2), len(ratings)

    async def list_for_user(
        self, db: Any, reviewee_id: str, review_type: str | None, limit: int
    ) -> list[Review]:
        return [
            replace(r)
            for r in reversed(self.store.reviews)
            if r.reviewee_id == reviewee_id
            and (review_type is None or r.review_type == review_type)
        ][:limit]

    async def list_for_order(self, db: Any, order_id: str) -> list[Review]:
        return [replace(r) for r in self.store.reviews if r.order_id == order_id]


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


class FakeGateway:
    """Scriptable PaymentGatewayProtocol: tests register verifications up front."""

    def __init__(self) -> None:
        self.verifications: dict[str, PaymentVerification] = {}
        self.initialized: list[dict[str, Any]] = []
        self.transfers: list[dict[str, Any]] = []
        self.transfer_states: dict[str, str] = {}
        self.verify_error: Exception | None = None
        self.transfer_error: Exception | None = None
        # Raised once, after the transfer went through: a response lost in transit
        self.error_after_transfer: Exception | None = None
        self.lookup_error: Exception | None = None

    def approve(self, reference: str, amount: int, metadata: dict[str, Any]) -> None:
        self.verifications[reference] = PaymentVerification(
            reference=reference, status="success", amount=amount, metadata=metadata
        )

    async def initialize_transaction(
        self, email: str, amount: int, reference: str, metadata: dict[str, Any]
    ) -> PaymentAuthorization:
        self.initialized.append(
            {"email": email, "amount": amount, "reference": reference, "metadata": metadata}
        )
        return PaymentAuthorization(
            authorization_url=f"https://checkout.test/{reference}",
            access_code=f"ac_{reference}",
            reference=reference,
        )

    async def verify_transaction(self, reference: str) -> PaymentVerification:
        if self.verify_error is not None:
            raise self.verify_error
        verification = self.verifications.get(reference)
        if verification is None:
            raise PaymentVerificationFailedError("Transaction reference not found")
        return verification

    async def create_transfer_recipient(self, bank: BankDetails) -> str:
        return f"RCP_{bank.account_number}"

    async def initiate_transfer(
        self, amount: int, recipient_code: str, reference: str, reason: str
    ) -> TransferResult:
        if self.transfer_error is not None:
            raise self.transfer_error
        self.transfers.append(
            {"amount": amount, "recipient": recipient_code, "reference": reference}
        )
        self.transfer_states[reference] = "pending"
        if self.error_after_transfer is not None:
            error, self.error_after_transfer = self.error_after_transfer, None
            raise error
        return TransferResult(
            transfer_code=f"TRF_{len(self.transfers)}", status="pending", reference=reference
        )

    async def fetch_transfer(self, reference: str) -> TransferResult | None:
        if self.lookup_error is not None:
            raise self.lookup_error
        for n, transfer in enumerate(self.transfers, start=1):
            if transfer["reference"] == reference:
                return TransferResult(
                    transfer_code=f"TRF_{n}",
                    status=self.transfer_states[reference],
                    reference=reference,
                )
        return None


class InMemoryReferenceGuard:
    def __init__(self) -> None:
        self.in_flight: set[str] = set()

    async def acquire(self, reference: str) -> bool:
        if reference in self.in_flight:
            return False
        self.in_flight.add(reference)
        return True

    async def release(self, reference: str) -> None:
        self.in_flight.discard(reference)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class Marketplace:
    """All services wired onto one FakeStore, plus seeding helpers."""

    def __init__(self) -> None:
        self.store = FakeStore()
        self.db = FakeSession(self.store)
        self.gateway = FakeGateway()
        self.guard = InMemoryReferenceGuard()

        self.accounts = InMemoryAccountRepository(self.store)
        self.products = InMemoryProductRepository(self.store)
        self.order_repo = InMemoryOrderRepository(self.store)
        self.dispute_repo = InMemoryDisputeRepository(self.store)
        self.penalty_repo = InMemoryPenaltyRepository(self.store)
        self.report_repo = InMemoryReportRepository(self.store)
        self.review_repo = InMemoryReviewRepository(self.store)

        self.notifier = NotificationService(InMemoryNotificationRepository(self.store))
        self.escrow = EscrowEngine(self.accounts)
        self.orders = OrderApplicationService(
            repo=self.order_repo,
            product_repo=self.products,
            account_repo=self.accounts,
            escrow=self.escrow,
            gateway=self.gateway,
            reference_guard=self.guard,
            notifier=self.notifier,
        )
        self.penalties = PenaltyService(
            repo=self.penalty_repo,
            account_repo=self.accounts,
            notifier=self.notifier,
            dispute_repo=self.dispute_repo,
        )
        self.disputes = DisputeService(
            repo=self.dispute_repo,
            order_repo=self.order_repo,
            account_repo=self.accounts,
            escrow=self.escrow,
            penalties=self.penalties,
            notifier=self.notifier,
        )
        self.withdrawals = InMemoryWithdrawalRepository(self.store)
        self.wallets = AccountApplicationService(
            repo=self.accounts,
            gateway=self.gateway,
            notifier=self.notifier,
            withdrawals=self.withdrawals,
            reference_guard=self.guard,
        )
        self.reports = ReportService(
            repo=self.report_repo,
            order_repo=self.order_repo,
            product_repo=self.products,
            account_repo=self.accounts,
            penalties=self.penalties,
            notifier=self.notifier,
        )
        self.reviews = ReviewService(
            repo=self.review_repo,
            order_repo=self.order_repo,
            account_repo=self.accounts,
            notifier=self.notifier,
        )

        self.add_account(PLATFORM_ACCOUNT_ID)

    # --- seeding ---

    def add_account(self, user_id: str, available: int = 0, pending: int = 0, **extra: Any) -> None:
        self.store.accounts[user_id] = Account(
            user_id=user_id, pending_balance=pending, available_balance=available, **extra
        )
        self.store.commit()

    def add_product(
        self,
        product_id: str,
        seller_id: str,
        price: int,
        quantity: int = 10,
        is_active: bool = True,
    ) -> None:
        self.store.products[product_id] = Product(
            id=product_id,
            seller_id=seller_id,
            name=f"Product {product_id}",
            price=price,
            quantity=quantity,
            is_active=is_active,
        )
        self.store.commit()

    # --- reads ---

    def account(self, user_id: str) -> Account:
        return self.store.accounts[user_id]

    def order(self, order_id: str) -> Order:
        return self.store.orders[order_id]

    def ledger_for(self, user_id: str) -> list[LedgerEntry]:
        return [e for e in self.store.ledger if e.user_id == user_id]

    def entry(self, reference: str) -> LedgerEntry:
        return next(e for e in self.store.ledger if e.reference == reference)

    def notifications_for(self, user_id: str) -> list[Notification]:
        return [n for n in self.store.notifications if n.user_id == user_id]

    def ledger_violations(self) -> list[str]:
        """The reconciliation rules, evaluated over the in-memory tables."""
        violations = []
        for user_id, account in self.store.accounts.items():
            rows = self.ledger_for(user_id)
            available = sum(e.amount for e in rows if e.pool == LedgerPool.AVAILABLE)
            held = sum(
                e.amount
                for e in rows
                if e.entry_type == LedgerEntryType.ESCROW and e.escrow_status == EscrowStatus.HELD
            )
            if available != account.available_balance:
                violations.append(f"available {user_id}")
            if held != account.pending_balance:
                violations.append(f"pending {user_id}")
        for order in self.store.orders.values():
            if order.status != OrderStatus.COMPLETED:
                continue
            distributed = sum(
                e.amount
                for e in self.store.ledger
                if e.order_id == order.id
                and (
                    e.entry_type == LedgerEntryType.CREDIT
                    or (e.entry_type == LedgerEntryType.DEBIT and e.pool == LedgerPool.AVAILABLE)
                )
            )
            if distributed != order.total_amount:
                violations.append(f"order {order.order_number}")
        return violations

    # --- flows ---

    async def checkout(self, buyer: Actor, product_id: str, quantity: int = 1) -> Order:
        """Create the order, approve its payment at the gateway and confirm it."""
        created = await self.orders.create_order(self.db, buyer, product_id, quantity)
        init = await self.orders.initialize_payment(
            self.db, buyer, created.id, "buyer@campus.test"
        )
        metadata = self.gateway.initialized[-1]["metadata"]
        self.gateway.approve(init.reference, created.total_amount, metadata)
        await self.orders.confirm_payment(self.db, init.reference)
        return self.order(created.id)

    async def deliver(self, rider: Actor, order_id: str) -> None:
        await self.orders.accept_order(self.db, rider, order_id)
        for status in ("PICKED_UP", "ON_THE_WAY", "DELIVERED"):
            await self.orders.update_delivery_status(self.db, rider, order_id, status)
