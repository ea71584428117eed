"""Redis SET NX guard: one in-flight gateway call per reference.

The guard only keeps two concurrent requests for the same reference from
both reaching the gateway; the UNIQUE reference columns (orders.payment_reference,
withdrawals.reference) stay the authoritative idempotency check.
"""

from config.settings import settings
from src.cm_common.redis_client import get_redis


class RedisReferenceGuard:
    def __init__(self, namespace: str = "verify", ttl_seconds: int | None = None) -> None:
        self._prefix = f"cm:payment:{namespace}:"
        self._ttl = ttl_seconds or settings.PAYMENT_REFERENCE_LOCK_SECONDS

    async def acquire(self, reference: str) -> bool:
        redis = await get_redis()
        return bool(await redis.set(f"{self._prefix}{reference}", "1", nx=True, ex=self._ttl))

    async def release(self, reference: str) -> None:
        redis = await get_redis()
        await redis.delete(f"{self._prefix}{reference}")
