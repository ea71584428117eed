"""Paystack adapter over httpx.AsyncClient.

Only the calls settlement needs: initialize, verify, transfer recipient,
transfer and transfer lookup. Transport failures and 5xx answers raise
PaymentGatewayError; a 2xx or 4xx answer with ``"status": false`` is a business
rejection and is mapped by each call to the matching domain error.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.cm_common.errors import (
    PaymentGatewayError,
    PaymentVerificationFailedError,
    PayoutFailedError,
)
from src.cm_payment.domain.models import (
    BankDetails,
    PaymentAuthorization,
    PaymentVerification,
    TransferResult,
)

logger = logging.getLogger(__name__)


class PaystackGateway:
    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self._base_url = base_url or settings.PAYSTACK_BASE_URL
        self._timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=payload)
        except httpx.TimeoutException:
            logger.warning("Paystack %s %s timed out", method, path)
            raise PaymentGatewayError("request timed out") from None
        except httpx.HTTPError as exc:
            logger.warning("Paystack %s %s failed: %s", method, path, exc)
            raise PaymentGatewayError(str(exc)) from exc

        if response.status_code >= 500:
            raise PaymentGatewayError(f"HTTP {response.status_code}")
        try:
            body: dict[str, Any] = response.json()
        except ValueError:
            raise PaymentGatewayError("malformed response body") from None
        return body

    async def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        metadata: dict[str, Any],
    ) -> PaymentAuthorization:
        body = await self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": amount,
                "reference": reference,
                "callback_url": settings.PAYMENT_CALLBACK_URL,
                "metadata": metadata,
            },
        )
        if not body.get("status"):
            raise PaymentGatewayError(body.get("message", "initialize rejected"))
        data = body.get("data") or {}
        return PaymentAuthorization(
            authorization_url=data.get("authorization_url", ""),
            access_code=data.get("access_code", ""),
            reference=data.get("reference", reference),
        )

    async def verify_transaction(self, reference: str) -> PaymentVerification:
        body = await self._request("GET", f"/transaction/verify/{reference}")
        if not body.get("status"):
            raise PaymentVerificationFailedError(body.get("message", "unknown reference"))
        data = body.get("data") or {}
        metadata = data.get("metadata")
        return PaymentVerification(
            reference=data.get("reference", reference),
            status=data.get("status", ""),
            amount=int(data.get("amount") or 0),
            metadata=metadata if isinstance(metadata, dict) else {},
            gateway_response=data.get("gateway_response"),
        )

    async def create_transfer_recipient(self, bank: BankDetails) -> str:
        body = await self._request(
            "POST",
            "/transferrecipient",
            {
                "type": "nuban",
                "name": bank.account_name,
                "account_number": bank.account_number,
                "bank_code": bank.bank_code,
                "currency": "NGN",
            },
        )
        if not body.get("status"):
            raise PayoutFailedError(body.get("message", "recipient rejected"))
        return str((body.get("data") or {}).get("recipient_code", ""))

    async def initiate_transfer(
        self, amount: int, recipient_code: str, reference: str, reason: str
    ) -> TransferResult:
        body = await self._request(
            "POST",
            "/transfer",
            {
                "source": "balance",
                "amount": amount,
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason,
            },
        )
        if not body.get("status"):
            raise PayoutFailedError(body.get("message", "transfer rejected"))
        data = body.get("data") or {}
        return TransferResult(
            transfer_code=data.get("transfer_code", ""),
            status=data.get("status", ""),
            reference=data.get("reference", reference),
        )

    async def fetch_transfer(self, reference: str) -> TransferResult | None:
        """Look a transfer up by our reference; None when Paystack never received it."""
        body = await self._request("GET", f"/transfer/verify/{reference}")
        if not body.get("status"):
            return None
        data = body.get("data") or {}
        return TransferResult(
            transfer_code=data.get("transfer_code", ""),
            status=data.get("status", ""),
            reference=data.get("reference", reference),
        )
