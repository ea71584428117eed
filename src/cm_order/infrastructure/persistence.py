# src/cm_order/infrastructure/persistence.py
"""OrderRepository — raw SQL persistence implementation."""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import InternalError
from src.cm_order.domain.models import Order

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, order_number, buyer_id, seller_id, product_id, quantity,
    unit_price, product_price, delivery_fee, platform_commission, total_amount,
    status, is_paid, payment_reference, rider_id, is_disputed, refunded_amount,
    delivery_address, created_at, rider_assigned_at, picked_up_at, delivered_at,
    completed_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (id, order_number, buyer_id, seller_id, product_id, quantity,
        unit_price, product_price, delivery_fee, platform_commission, total_amount,
        status, is_paid, payment_reference, delivery_address)
    VALUES (:id, :order_number, :buyer_id, :seller_id, :product_id, :quantity,
        :unit_price, :product_price, :delivery_fee, :platform_commission, :total_amount,
        :status, :is_paid, :payment_reference, :delivery_address)
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_LOCK_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
    FOR UPDATE
""")

_GET_ORDER_BY_REFERENCE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE payment_reference = :reference
""")

_MARK_PAID_SQL = text(f"""
    UPDATE orders
    SET is_paid = TRUE, payment_reference = :reference, updated_at = NOW()
    WHERE id = :id AND is_paid = FALSE AND payment_reference IS NULL
    RETURNING {_SELECT_COLUMNS}
""")

_ASSIGN_RIDER_SQL = text(f"""
    UPDATE orders
    SET rider_id = :rider_id, status = 'RIDER_ASSIGNED',
        rider_assigned_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status = 'PENDING' AND rider_id IS NULL AND is_paid = TRUE
    RETURNING {_SELECT_COLUMNS}
""")

_ADVANCE_STATUS_SQL = text(f"""
    UPDATE orders
    SET status = CAST(:to_status AS VARCHAR),
        picked_up_at = CASE WHEN CAST(:to_status AS VARCHAR) = 'PICKED_UP'
                            THEN COALESCE(picked_up_at, NOW()) ELSE picked_up_at END,
        delivered_at = CASE WHEN CAST(:to_status AS VARCHAR) = 'DELIVERED'
                            THEN COALESCE(delivered_at, NOW()) ELSE delivered_at END,
        updated_at = NOW()
    WHERE id = :id AND rider_id = :rider_id AND status = :from_status
    RETURNING {_SELECT_COLUMNS}
""")

_MARK_COMPLETED_SQL = text(f"""
    UPDATE orders
    SET status = 'COMPLETED', completed_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status = 'DELIVERED' AND is_disputed = FALSE
    RETURNING {_SELECT_COLUMNS}
""")

_SET_DISPUTED_SQL = text(f"""
    UPDATE orders
    SET is_disputed = :is_disputed, updated_at = NOW()
    WHERE id = :id
    RETURNING {_SELECT_COLUMNS}
""")

_ADD_REFUND_SQL = text(f"""
    UPDATE orders
    SET refunded_amount = refunded_amount + :amount, updated_at = NOW()
    WHERE id = :id
    RETURNING {_SELECT_COLUMNS}
""")

# as_role picks the column the caller must match: buyer_id, seller_id or rider_id
_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE ((:as_role = 'BUYER' AND buyer_id = :user_id)
        OR (:as_role = 'SELLER' AND seller_id = :user_id)
        OR (:as_role = 'RIDER' AND rider_id = :user_id))
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_AVAILABLE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE status = 'PENDING' AND rider_id IS NULL AND is_paid = TRUE
    ORDER BY id ASC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        order_number=row.order_number,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        product_id=row.product_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
        product_price=row.product_price,
        delivery_fee=row.delivery_fee,
        platform_commission=row.platform_commission,
        total_amount=row.total_amount,
        status=row.status,
        is_paid=row.is_paid,
        payment_reference=row.payment_reference,
        rider_id=row.rider_id,
        is_disputed=row.is_disputed,
        refunded_amount=row.refunded_amount,
        delivery_address=row.delivery_address,
        created_at=row.created_at,
        rider_assigned_at=row.rider_assigned_at,
        picked_up_at=row.picked_up_at,
        delivered_at=row.delivered_at,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
    )


def _one(row: Any) -> Order | None:
    return _row_to_order(row) if row else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, order: Order) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "order_number": order.order_number,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "product_id": order.product_id,
                "quantity": order.quantity,
                "unit_price": order.unit_price,
                "product_price": order.product_price,
                "delivery_fee": order.delivery_fee,
                "platform_commission": order.platform_commission,
                "total_amount": order.total_amount,
                "status": order.status,
                "is_paid": order.is_paid,
                "payment_reference": order.payment_reference,
                "delivery_address": order.delivery_address,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        return _row_to_order(row)

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        return _one(result.fetchone())

    async def get_for_update(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_LOCK_ORDER_SQL, {"id": order_id})
        return _one(result.fetchone())

    async def get_by_payment_reference(
        self, db: AsyncSession, reference: str
    ) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_REFERENCE_SQL, {"reference": reference})
        return _one(result.fetchone())

    async def mark_paid(
        self, db: AsyncSession, order_id: str, reference: str
    ) -> Order | None:
        result = await db.execute(_MARK_PAID_SQL, {"id": order_id, "reference": reference})
        return _one(result.fetchone())

    async def assign_rider(
        self, db: AsyncSession, order_id: str, rider_id: str
    ) -> Order | None:
        result = await db.execute(_ASSIGN_RIDER_SQL, {"id": order_id, "rider_id": rider_id})
        return _one(result.fetchone())

    async def advance_status(
        self,
        db: AsyncSession,
        order_id: str,
        rider_id: str,
        from_status: str,
        to_status: str,
    ) -> Order | None:
        result = await db.execute(
            _ADVANCE_STATUS_SQL,
            {
                "id": order_id,
                "rider_id": rider_id,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
        return _one(result.fetchone())

    async def mark_completed(self, db: AsyncSession, order_id: str) -> Order | None:
        result = await db.execute(_MARK_COMPLETED_SQL, {"id": order_id})
        return _one(result.fetchone())

    async def set_disputed(
        self, db: AsyncSession, order_id: str, is_disputed: bool
    ) -> Order | None:
        result = await db.execute(
            _SET_DISPUTED_SQL, {"id": order_id, "is_disputed": is_disputed}
        )
        return _one(result.fetchone())

    async def add_refund(
        self, db: AsyncSession, order_id: str, amount: int
    ) -> Order | None:
        result = await db.execute(_ADD_REFUND_SQL, {"id": order_id, "amount": amount})
        return _one(result.fetchone())

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        as_role: str,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "user_id": user_id,
                "as_role": as_role,
                "status": status,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_available(self, db: AsyncSession, limit: int) -> list[Order]:
        result = await db.execute(_LIST_AVAILABLE_SQL, {"limit": limit})
        return [_row_to_order(row) for row in result.fetchall()]
