"""Domain model for cm_catalog — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Product:
    id: str
    seller_id: str
    name: str
    price: int       # kobo per unit
    quantity: int    # units in stock
    category: str = "GENERAL"
    description: str = ""
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_purchasable(self) -> bool:
        return self.is_active and self.quantity > 0
