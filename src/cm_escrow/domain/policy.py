"""Settlement policy: fixed fees and the seller / rider / platform split.

All values are kobo. The seller share is computed from the commission stored
on the order when it was created, both when the seller escrow is opened and
when it is released, so the two can never disagree.

    seller   = product_price - (commission - PLATFORM_DELIVERY_CUT)
    rider    = RIDER_SHARE
    platform = commission
    seller + rider + platform == product_price + DELIVERY_FEE == total
"""

from dataclasses import dataclass

from src.cm_common.money import calculate_fee, naira

DELIVERY_FEE = naira(800)
RIDER_SHARE = naira(560)
PLATFORM_DELIVERY_CUT = DELIVERY_FEE - RIDER_SHARE  # naira(240)
COMMISSION_RATE_BPS = 1000  # 10%


@dataclass(frozen=True)
class PriceQuote:
    unit_price: int
    quantity: int
    product_price: int
    delivery_fee: int
    platform_commission: int
    total_amount: int


@dataclass(frozen=True)
class SettlementBreakdown:
    seller: int
    rider: int
    platform: int
    refunded: int = 0

    @property
    def total(self) -> int:
        return self.seller + self.rider + self.platform + self.refunded


def compute_commission(product_price: int) -> int:
    return calculate_fee(product_price, COMMISSION_RATE_BPS)


def quote(unit_price: int, quantity: int) -> PriceQuote:
    product_price = unit_price * quantity
    return PriceQuote(
        unit_price=unit_price,
        quantity=quantity,
        product_price=product_price,
        delivery_fee=DELIVERY_FEE,
        platform_commission=compute_commission(product_price),
        total_amount=product_price + DELIVERY_FEE,
    )


def seller_share(product_price: int, platform_commission: int) -> int:
    return product_price - (platform_commission - PLATFORM_DELIVERY_CUT)


def settlement_for(product_price: int, platform_commission: int) -> SettlementBreakdown:
    return SettlementBreakdown(
        seller=seller_share(product_price, platform_commission),
        rider=RIDER_SHARE,
        platform=platform_commission,
    )
