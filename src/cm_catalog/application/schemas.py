"""Pydantic schemas for cm_catalog API."""

from pydantic import BaseModel, Field

from src.cm_catalog.domain.models import Product
from src.cm_common.datetime_utils import isoformat_or_none
from src.cm_common.money import kobo_to_display


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    category: str = Field("GENERAL", max_length=64)
    price_kobo: int = Field(..., gt=0)
    quantity: int = Field(..., ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class ProductResponse(BaseModel):
    id: str
    seller_id: str
    name: str
    description: str
    category: str
    price_kobo: int
    price_display: str
    quantity: int
    is_active: bool
    created_at: str | None

    @classmethod
    def from_domain(cls, p: Product) -> "ProductResponse":
        return cls(
            id=p.id,
            seller_id=p.seller_id,
            name=p.name,
            description=p.description,
            category=p.category,
            price_kobo=p.price,
            price_display=kobo_to_display(p.price),
            quantity=p.quantity,
            is_active=p.is_active,
            created_at=isoformat_or_none(p.created_at),
        )


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    next_cursor: str | None
    has_more: bool
