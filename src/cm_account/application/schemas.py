"""Pydantic schemas for cm_account API."""

from pydantic import BaseModel, Field

from src.cm_account.domain.constants import MIN_WITHDRAWAL
from src.cm_common.money import kobo_to_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class WithdrawRequest(BaseModel):
    amount_kobo: int = Field(
        ..., gt=0, description=f"Amount to withdraw in kobo (minimum {MIN_WITHDRAWAL})"
    )
    account_name: str = Field(..., min_length=1, max_length=128)
    account_number: str = Field(..., pattern=r"^\d{10}$")
    bank_code: str = Field(..., min_length=3, max_length=10)
    idempotency_key: str | None = Field(
        None,
        pattern=r"^[A-Za-z0-9_-]{8,64}$",
        description="Client key; a retry with the same key never pays out twice",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    available_balance_kobo: int
    available_balance_display: str
    pending_balance_kobo: int
    pending_balance_display: str
    total_balance_kobo: int
    total_balance_display: str

    @classmethod
    def from_kobo(cls, user_id: str, available: int, pending: int) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            available_balance_kobo=available,
            available_balance_display=kobo_to_display(available),
            pending_balance_kobo=pending,
            pending_balance_display=kobo_to_display(pending),
            total_balance_kobo=available + pending,
            total_balance_display=kobo_to_display(available + pending),
        )


class ProfileResponse(BaseModel):
    user_id: str
    trust_level: str
    avg_rating: float
    total_reviews: int
    completed_orders: int
    penalty_points: int
    warning_count: int
    is_suspended: bool
    suspended_until: str | None


class WithdrawResponse(BaseModel):
    reference: str
    status: str
    transfer_code: str | None
    transfer_status: str | None
    available_balance_kobo: int
    available_balance_display: str
    withdrawn_kobo: int
    withdrawn_display: str
    ledger_entry_id: int


class WithdrawalItem(BaseModel):
    reference: str
    status: str
    amount_kobo: int
    amount_display: str
    bank: str
    transfer_code: str | None
    failure_reason: str | None
    created_at: str


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    pool: str
    amount_kobo: int
    amount_display: str
    balance_after_kobo: int
    balance_after_display: str
    reference: str
    order_id: str | None
    escrow_status: str | None
    description: str | None
    created_at: str  # ISO8601 string


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
