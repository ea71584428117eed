"""Order domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import OrderStatus
from src.cm_escrow.domain.policy import SettlementBreakdown, settlement_for


@dataclass
class Order:
    id: str
    order_number: str            # BATA-..., prefix of every ledger reference
    buyer_id: str
    seller_id: str
    product_id: str
    # Price snapshot taken at creation; never rewritten after COMPLETED
    quantity: int
    unit_price: int              # kobo
    product_price: int           # kobo, unit_price * quantity
    delivery_fee: int            # kobo
    platform_commission: int     # kobo
    total_amount: int            # kobo, product_price + delivery_fee
    status: str = OrderStatus.PENDING.value
    is_paid: bool = False
    payment_reference: str | None = None
    rider_id: str | None = None
    is_disputed: bool = False
    refunded_amount: int = 0     # kobo returned to the buyer through disputes
    delivery_address: str = ""
    created_at: datetime | None = None
    rider_assigned_at: datetime | None = None
    picked_up_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_released(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    @property
    def settlement(self) -> SettlementBreakdown:
        return settlement_for(self.product_price, self.platform_commission)

    @property
    def seller_share(self) -> int:
        return self.settlement.seller

    @property
    def remaining_seller_share(self) -> int:
        return self.seller_share - self.refunded_amount
