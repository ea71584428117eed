"""Gateway-facing value objects — pure dataclasses, no HTTP dependency."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PaymentAuthorization:
    authorization_url: str
    access_code: str
    reference: str


@dataclass
class PaymentVerification:
    reference: str
    status: str                 # gateway status: success / failed / abandoned ...
    amount: int                 # kobo actually paid
    metadata: dict[str, Any] = field(default_factory=dict)
    gateway_response: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.status == "success"


@dataclass
class BankDetails:
    account_name: str
    account_number: str
    bank_code: str


@dataclass
class TransferResult:
    transfer_code: str
    status: str
    reference: str
