"""Pydantic request/response schemas for cm_order."""

from typing import Literal

from pydantic import BaseModel, Field

from src.cm_common.datetime_utils import isoformat_or_none
from src.cm_common.money import kobo_to_display
from src.cm_escrow.domain.policy import SettlementBreakdown
from src.cm_order.domain.models import Order


class CreateOrderRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(1, ge=1, le=100)
    delivery_address: str = Field("", max_length=500)


class UpdateDeliveryStatusRequest(BaseModel):
    status: Literal["PICKED_UP", "ON_THE_WAY", "DELIVERED"]


class OrderResponse(BaseModel):
    id: str
    order_number: str
    buyer_id: str
    seller_id: str
    rider_id: str | None
    product_id: str
    quantity: int
    unit_price: int
    product_price: int
    delivery_fee: int
    platform_commission: int
    total_amount: int
    total_display: str
    status: str
    is_paid: bool
    payment_reference: str | None
    is_disputed: bool
    refunded_amount: int
    delivery_address: str
    created_at: str | None
    rider_assigned_at: str | None
    picked_up_at: str | None
    delivered_at: str | None
    completed_at: str | None

    @classmethod
    def from_domain(cls, o: Order) -> "OrderResponse":
        return cls(
            id=o.id,
            order_number=o.order_number,
            buyer_id=o.buyer_id,
            seller_id=o.seller_id,
            rider_id=o.rider_id,
            product_id=o.product_id,
            quantity=o.quantity,
            unit_price=o.unit_price,
            product_price=o.product_price,
            delivery_fee=o.delivery_fee,
            platform_commission=o.platform_commission,
            total_amount=o.total_amount,
            total_display=kobo_to_display(o.total_amount),
            status=o.status,
            is_paid=o.is_paid,
            payment_reference=o.payment_reference,
            is_disputed=o.is_disputed,
            refunded_amount=o.refunded_amount,
            delivery_address=o.delivery_address,
            created_at=isoformat_or_none(o.created_at),
            rider_assigned_at=isoformat_or_none(o.rider_assigned_at),
            picked_up_at=isoformat_or_none(o.picked_up_at),
            delivered_at=isoformat_or_none(o.delivered_at),
            completed_at=isoformat_or_none(o.completed_at),
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


class SettlementResponse(BaseModel):
    order_id: str
    order_number: str
    seller_amount: int
    rider_amount: int
    platform_amount: int
    refunded_amount: int
    seller_display: str
    rider_display: str
    platform_display: str

    @classmethod
    def from_breakdown(cls, order: Order, b: SettlementBreakdown) -> "SettlementResponse":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            seller_amount=b.seller,
            rider_amount=b.rider,
            platform_amount=b.platform,
            refunded_amount=b.refunded,
            seller_display=kobo_to_display(b.seller),
            rider_display=kobo_to_display(b.rider),
            platform_display=kobo_to_display(b.platform),
        )
