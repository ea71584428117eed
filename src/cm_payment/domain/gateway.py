"""Ports to the external payment provider and the reference in-flight guard.

Order, account and escrow services depend on these Protocols only; tests inject
fakes, production wires PaystackGateway and RedisReferenceGuard.
"""

from typing import Any, Protocol

from src.cm_payment.domain.models import (
    BankDetails,
    PaymentAuthorization,
    PaymentVerification,
    TransferResult,
)


class PaymentGatewayProtocol(Protocol):
    async def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        metadata: dict[str, Any],
    ) -> PaymentAuthorization: ...

    async def verify_transaction(self, reference: str) -> PaymentVerification: ...

    async def create_transfer_recipient(self, bank: BankDetails) -> str: ...

    async def initiate_transfer(
        self, amount: int, recipient_code: str, reference: str, reason: str
    ) -> TransferResult: ...

    async def fetch_transfer(self, reference: str) -> TransferResult | None: ...


class ReferenceGuardProtocol(Protocol):
    async def acquire(self, reference: str) -> bool: ...

    async def release(self, reference: str) -> None: ...
