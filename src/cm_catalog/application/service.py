"""ProductApplicationService — the catalog glue the order lifecycle reads from.

Only SELLER (or ADMIN) accounts list products; only the owner restocks or
toggles one. Stock decrements happen inside payment confirmation, not here.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_catalog.application.schemas import (
    CreateProductRequest,
    ProductListResponse,
    ProductResponse,
)
from src.cm_catalog.domain.models import Product
from src.cm_catalog.domain.repository import ProductRepositoryProtocol
from src.cm_catalog.infrastructure.persistence import ProductRepository
from src.cm_common.actor import Actor
from src.cm_common.errors import NotAuthorizedError, ProductNotFoundError
from src.cm_common.id_generator import generate_id
from src.cm_common.pagination import cursor_decode, cursor_encode

logger = logging.getLogger(__name__)


class ProductApplicationService:
    def __init__(self, repo: ProductRepositoryProtocol | None = None) -> None:
        self._repo: ProductRepositoryProtocol = repo or ProductRepository()

    async def create_product(
        self, db: AsyncSession, actor: Actor, body: CreateProductRequest
    ) -> ProductResponse:
        if not (actor.is_seller or actor.is_admin):
            raise NotAuthorizedError("Only sellers can list products")
        product = Product(
            id=generate_id(),
            seller_id=actor.user_id,
            name=body.name,
            description=body.description,
            category=body.category,
            price=body.price_kobo,
            quantity=body.quantity,
            is_active=True,
        )
        try:
            saved = await self._repo.insert(db, product)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ProductResponse.from_domain(saved)

    async def get_product(self, db: AsyncSession, product_id: str) -> ProductResponse:
        product = await self._repo.get_by_id(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return ProductResponse.from_domain(product)

    async def list_products(
        self,
        db: AsyncSession,
        seller_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> ProductListResponse:
        cursor_id = cursor_decode(cursor)
        # Browsing hides sold-out and inactive products; a seller's shelf shows all
        products = await self._repo.list_products(
            db,
            seller_id,
            seller_id is None,
            str(cursor_id) if cursor_id is not None else None,
            limit + 1,
        )
        has_more = len(products) > limit
        page = products[:limit]
        return ProductListResponse(
            items=[ProductResponse.from_domain(p) for p in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    async def restock(
        self, db: AsyncSession, actor: Actor, product_id: str, quantity: int
    ) -> ProductResponse:
        try:
            await self._get_owned(db, actor, product_id)
            product = await self._repo.restock(db, product_id, quantity)
            if product is None:
                raise ProductNotFoundError(product_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Product %s restocked +%d (now %d)", product_id, quantity, product.quantity)
        return ProductResponse.from_domain(product)

    async def set_active(
        self, db: AsyncSession, actor: Actor, product_id: str, is_active: bool
    ) -> ProductResponse:
        try:
            await self._get_owned(db, actor, product_id)
            product = await self._repo.set_active(db, product_id, is_active)
            if product is None:
                raise ProductNotFoundError(product_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ProductResponse.from_domain(product)

    async def _get_owned(self, db: AsyncSession, actor: Actor, product_id: str) -> Product:
        product = await self._repo.get_by_id(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.seller_id != actor.user_id and not actor.is_admin:
            raise NotAuthorizedError("You can only manage your own products")
        return product
