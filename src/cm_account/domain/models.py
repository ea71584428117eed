"""Domain models for cm_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    user_id: str
    pending_balance: int     # kobo, escrowed and not yet spendable
    available_balance: int   # kobo, withdrawable
    penalty_points: int = 0
    warning_count: int = 0
    last_warning_at: datetime | None = None
    trust_level: str = "BRONZE"   # TrustLevel value
    trust_downgrades: int = 0
    avg_rating: float = 0.0
    total_reviews: int = 0
    completed_orders: int = 0
    is_suspended: bool = False
    suspended_until: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_balance(self) -> int:
        return self.pending_balance + self.available_balance

    def suspension_active(self, now: datetime) -> bool:
        """A lapsed temporary ban no longer blocks the account."""
        if not self.is_suspended:
            return False
        return self.suspended_until is None or self.suspended_until > now


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # LedgerEntryType value
    pool: str                        # LedgerPool value
    amount: int                      # kobo, positive=income negative=outflow
    balance_before: int              # kobo, touched pool before the op
    balance_after: int               # kobo, touched pool after the op
    reference: str                   # globally unique
    order_id: str | None = None
    escrow_status: str | None = None  # EscrowStatus value, ESCROW rows only
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class Withdrawal:
    """A payout: the ledger debit is committed before the gateway is called."""
    reference: str                   # also the gateway transfer reference
    user_id: str
    amount: int                      # kobo
    account_name: str
    account_number: str
    bank_code: str
    ledger_entry_id: int
    status: str = "PENDING"          # WithdrawalStatus value
    idempotency_key: str | None = None
    transfer_code: str | None = None
    transfer_status: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def bank_label(self) -> str:
        return f"{self.bank_code}/{self.account_number[-4:]}"

    def same_request(self, amount: int, account_number: str, bank_code: str) -> bool:
        return (
            self.amount == amount
            and self.account_number == account_number
            and self.bank_code == bank_code
        )
