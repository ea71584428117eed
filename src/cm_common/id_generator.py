"""Business identifiers: order ids, order numbers and payout references.

IDs are snowflake-style decimal strings (time-ordered, unique per process), so
an ORDER BY on them follows creation order and cursor pagination works on
plain string comparison of equal-length values.
"""

import threading
import time

_EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z
_SEQUENCE_BITS = 12
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1
_WORKER_BITS = 10


class SnowflakeIdGenerator:
    """timestamp(41) | worker(10) | sequence(12), rendered as a decimal string."""

    def __init__(self, worker_id: int = 0) -> None:
        if not 0 <= worker_id < (1 << _WORKER_BITS):
            raise ValueError(f"worker_id must fit in {_WORKER_BITS} bits, got {worker_id}")
        self._worker_id = worker_id
        self._last_ms = -1
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = int(time.time() * 1000)
            if now_ms < self._last_ms:
                # Clock stepped back; keep issuing on the last seen millisecond
                now_ms = self._last_ms
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = int(time.time() * 1000)
            else:
                self._sequence = 0
            self._last_ms = now_ms
            value = (
                (now_ms - _EPOCH_MS) << (_WORKER_BITS + _SEQUENCE_BITS)
                | self._worker_id << _SEQUENCE_BITS
                | self._sequence
            )
            return str(value)


_generator = SnowflakeIdGenerator()


def generate_id() -> str:
    return _generator.next_id()


def generate_order_number() -> str:
    """Human-facing order number, also the prefix of every escrow/credit reference."""
    return f"BATA-{generate_id()}"


def generate_withdrawal_reference() -> str:
    return f"WD-{generate_id()}"
