"""Integer arithmetic utilities for kobo-denominated money.

All prices, fees, shares and balances are int kobo (1 naira = 100 kobo).
No float, no Decimal.
"""


def naira(amount: int) -> int:
    """Convert whole naira to kobo: naira(800) -> 80000."""
    return amount * 100


def kobo_to_display(kobo: int) -> str:
    """Convert kobo to display string: 580000 -> '₦5,800.00', -474000 -> '-₦4,740.00'."""
    if kobo < 0:
        abs_kobo = -kobo
        return f"-₦{abs_kobo // 100:,}.{abs_kobo % 100:02d}"
    return f"₦{kobo // 100:,}.{kobo % 100:02d}"


def calculate_fee(amount: int, fee_rate_bps: int) -> int:
    """Calculate a fee with ceiling division (platform never loses a kobo).

    fee = ceil(amount * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if amount == 0 or fee_rate_bps == 0:
        return 0
    return (amount * fee_rate_bps + 9999) // 10000
