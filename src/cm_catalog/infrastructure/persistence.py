"""ProductRepository — raw SQL persistence implementation.

Stock only ever moves through guarded UPDATE ... RETURNING statements, so two
payments racing for the last unit cannot both succeed.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_catalog.domain.models import Product
from src.cm_common.errors import InternalError

_COLUMNS = """
    id, seller_id, name, description, category, price, quantity,
    is_active, created_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO products (id, seller_id, name, description, category, price, quantity, is_active)
    VALUES (:id, :seller_id, :name, :description, :category, :price, :quantity, :is_active)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM products WHERE id = :id")

_DECREMENT_STOCK_SQL = text(f"""
    UPDATE products
    SET quantity = quantity - :quantity,
        updated_at = NOW()
    WHERE id = :id AND is_active = TRUE AND quantity >= :quantity
    RETURNING {_COLUMNS}
""")

_RESTOCK_SQL = text(f"""
    UPDATE products
    SET quantity = quantity + :quantity,
        is_active = TRUE,
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_SET_ACTIVE_SQL = text(f"""
    UPDATE products
    SET is_active = :is_active,
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM products
    WHERE (CAST(:seller_id AS TEXT) IS NULL OR seller_id = :seller_id)
      AND (NOT :active_only OR (is_active = TRUE AND quantity > 0))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_product(row: Any) -> Product:
    return Product(
        id=row.id,
        seller_id=row.seller_id,
        name=row.name,
        description=row.description,
        category=row.category,
        price=row.price,
        quantity=row.quantity,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ProductRepository:
    async def insert(self, db: AsyncSession, product: Product) -> Product:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": product.id,
                "seller_id": product.seller_id,
                "name": product.name,
                "description": product.description,
                "category": product.category,
                "price": product.price,
                "quantity": product.quantity,
                "is_active": product.is_active,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Product insert returned no rows")
        return _row_to_product(row)

    async def get_by_id(self, db: AsyncSession, product_id: str) -> Product | None:
        result = await db.execute(_GET_SQL, {"id": product_id})
        row = result.fetchone()
        return _row_to_product(row) if row else None

    async def decrement_stock(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> Product | None:
        """None means inactive, missing, or not enough stock."""
        result = await db.execute(
            _DECREMENT_STOCK_SQL, {"id": product_id, "quantity": quantity}
        )
        row = result.fetchone()
        return _row_to_product(row) if row else None

    async def restock(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> Product | None:
        result = await db.execute(_RESTOCK_SQL, {"id": product_id, "quantity": quantity})
        row = result.fetchone()
        return _row_to_product(row) if row else None

    async def set_active(
        self, db: AsyncSession, product_id: str, is_active: bool
    ) -> Product | None:
        result = await db.execute(
            _SET_ACTIVE_SQL, {"id": product_id, "is_active": is_active}
        )
        row = result.fetchone()
        return _row_to_product(row) if row else None

    async def list_products(
        self,
        db: AsyncSession,
        seller_id: str | None,
        active_only: bool,
        cursor_id: str | None,
        limit: int,
    ) -> list[Product]:
        result = await db.execute(
            _LIST_SQL,
            {
                "seller_id": seller_id,
                "active_only": active_only,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_product(row) for row in result.fetchall()]
