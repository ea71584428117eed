from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_catalog.domain.models import Product


class ProductRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, product: Product) -> Product: ...

    async def get_by_id(self, db: AsyncSession, product_id: str) -> Product | None: ...

    async def decrement_stock(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> Product | None: ...

    async def restock(
        self, db: AsyncSession, product_id: str, quantity: int
    ) -> Product | None: ...

    async def set_active(
        self, db: AsyncSession, product_id: str, is_active: bool
    ) -> Product | None: ...

    async def list_products(
        self,
        db: AsyncSession,
        seller_id: str | None,
        active_only: bool,
        cursor_id: str | None,
        limit: int,
    ) -> list[Product]: ...
