"""Ledger reconciliation checks.

Each check is one aggregate query that returns only the offending rows, so an
empty result means the invariant holds:

  * available_balance == Σ AVAILABLE-pool ledger amounts, per account
  * pending_balance   == Σ HELD ESCROW ledger amounts, per account
  * for every COMPLETED order, the money that left escrow (all CREDIT rows
    plus AVAILABLE-pool DEBIT rows of the order) equals what the buyer paid,
    with clawbacks counted on both sides
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_AVAILABLE_MISMATCH_SQL = text("""
    SELECT a.user_id, a.available_balance,
           COALESCE(SUM(l.amount), 0) AS ledger_sum
    FROM accounts a
    LEFT JOIN ledger_entries l
           ON l.user_id = a.user_id AND l.pool = 'AVAILABLE'
    GROUP BY a.user_id, a.available_balance
    HAVING a.available_balance <> COALESCE(SUM(l.amount), 0)
""")

_PENDING_MISMATCH_SQL = text("""
    SELECT a.user_id, a.pending_balance,
           COALESCE(SUM(l.amount), 0) AS ledger_sum
    FROM accounts a
    LEFT JOIN ledger_entries l
           ON l.user_id = a.user_id
          AND l.entry_type = 'ESCROW'
          AND l.escrow_status = 'HELD'
    GROUP BY a.user_id, a.pending_balance
    HAVING a.pending_balance <> COALESCE(SUM(l.amount), 0)
""")

# Credits cover seller, rider, platform and buyer refunds; a post-release
# clawback adds a buyer CREDIT and an equal seller DEBIT, so it nets out.
_ORDER_CONSERVATION_SQL = text("""
    SELECT o.id, o.order_number, o.total_amount,
           COALESCE(SUM(CASE
               WHEN l.entry_type = 'CREDIT' THEN l.amount
               WHEN l.entry_type = 'DEBIT' AND l.pool = 'AVAILABLE' THEN l.amount
               ELSE 0 END), 0) AS distributed
    FROM orders o
    LEFT JOIN ledger_entries l ON l.order_id = o.id
    WHERE o.status = 'COMPLETED'
    GROUP BY o.id, o.order_number, o.total_amount
    HAVING o.total_amount <> COALESCE(SUM(CASE
               WHEN l.entry_type = 'CREDIT' THEN l.amount
               WHEN l.entry_type = 'DEBIT' AND l.pool = 'AVAILABLE' THEN l.amount
               ELSE 0 END), 0)
""")


async def verify_ledger_invariants(db: AsyncSession) -> list[str]:
    """Return one violation string per broken account or order."""
    violations: list[str] = []

    for row in (await db.execute(_AVAILABLE_MISMATCH_SQL)).fetchall():
        violations.append(
            f"available balance of {row.user_id} is {row.available_balance}, "
            f"ledger says {row.ledger_sum}"
        )
    for row in (await db.execute(_PENDING_MISMATCH_SQL)).fetchall():
        violations.append(
            f"pending balance of {row.user_id} is {row.pending_balance}, "
            f"held escrow says {row.ledger_sum}"
        )
    for row in (await db.execute(_ORDER_CONSERVATION_SQL)).fetchall():
        violations.append(
            f"order {row.order_number} paid {row.total_amount}, "
            f"distributed {row.distributed}"
        )

    for msg in violations:
        logger.error("Ledger invariant violated: %s", msg)
    return violations
