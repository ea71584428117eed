"""DisputeRepository, PenaltyRepository and ReportRepository, raw SQL persistence.

Evidence and attachments are TEXT[] columns; asyncpg maps them to list[str].
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import InternalError
from src.cm_dispute.domain.models import Dispute, DisputeMessage, Penalty, Report

# ---------------------------------------------------------------------------
# SQL: disputes
# ---------------------------------------------------------------------------

_DISPUTE_COLUMNS = """
    id, order_id, buyer_id, seller_id, reason, status,
    buyer_evidence, seller_evidence, resolution, refund_amount,
    resolved_at, resolved_by, created_at, updated_at
"""

_INSERT_DISPUTE_SQL = text(f"""
    INSERT INTO disputes (id, order_id, buyer_id, seller_id, reason, status,
        buyer_evidence, seller_evidence)
    VALUES (:id, :order_id, :buyer_id, :seller_id, :reason, :status,
        CAST(:buyer_evidence AS TEXT[]), CAST(:seller_evidence AS TEXT[]))
    ON CONFLICT (order_id) DO NOTHING
    RETURNING {_DISPUTE_COLUMNS}
""")

_GET_DISPUTE_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE id = :id")

_LOCK_DISPUTE_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE id = :id FOR UPDATE")

_GET_BY_ORDER_SQL = text(f"SELECT {_DISPUTE_COLUMNS} FROM disputes WHERE order_id = :order_id")

_SELLER_RESPONSE_SQL = text(f"""
    UPDATE disputes
    SET status = CASE WHEN status = 'OPEN' THEN 'UNDER_REVIEW' ELSE status END,
        seller_evidence = CASE
            WHEN cardinality(CAST(:seller_evidence AS TEXT[])) > 0
            THEN CAST(:seller_evidence AS TEXT[])
            ELSE seller_evidence END,
        updated_at = NOW()
    WHERE id = :id AND status IN ('OPEN', 'UNDER_REVIEW')
    RETURNING {_DISPUTE_COLUMNS}
""")

_RESOLVE_SQL = text(f"""
    UPDATE disputes
    SET status = :status, resolution = :resolution, refund_amount = :refund_amount,
        resolved_by = :resolved_by, resolved_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status IN ('OPEN', 'UNDER_REVIEW')
    RETURNING {_DISPUTE_COLUMNS}
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM disputes
    WHERE (buyer_id = :user_id OR seller_id = :user_id)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
    ORDER BY created_at DESC
    LIMIT :limit
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_DISPUTE_COLUMNS}
    FROM disputes
    WHERE CAST(:status AS TEXT) IS NULL OR status = :status
    ORDER BY created_at DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: dispute_messages (append-only)
# ---------------------------------------------------------------------------

_MESSAGE_COLUMNS = "id, dispute_id, sender_id, sender_type, message, attachments, created_at"

_INSERT_MESSAGE_SQL = text(f"""
    INSERT INTO dispute_messages (dispute_id, sender_id, sender_type, message, attachments)
    VALUES (:dispute_id, :sender_id, :sender_type, :message, CAST(:attachments AS TEXT[]))
    RETURNING {_MESSAGE_COLUMNS}
""")

_LIST_MESSAGES_SQL = text(f"""
    SELECT {_MESSAGE_COLUMNS}
    FROM dispute_messages
    WHERE dispute_id = :dispute_id
    ORDER BY id ASC
""")

# ---------------------------------------------------------------------------
# SQL: penalties
# ---------------------------------------------------------------------------

_PENALTY_COLUMNS = """
    id, user_id, action, reason, points_added, issued_by, banned_until,
    dispute_id, report_id, created_at
"""

# Partial unique indexes on (user_id, dispute_id) and (user_id, report_id)
_INSERT_PENALTY_SQL = text(f"""
    INSERT INTO penalties (user_id, action, reason, points_added, issued_by,
        banned_until, dispute_id, report_id)
    VALUES (:user_id, :action, :reason, :points_added, :issued_by,
        :banned_until, :dispute_id, :report_id)
    ON CONFLICT DO NOTHING
    RETURNING {_PENALTY_COLUMNS}
""")

_LIST_PENALTIES_SQL = text(f"""
    SELECT {_PENALTY_COLUMNS}
    FROM penalties
    WHERE CAST(:user_id AS TEXT) IS NULL OR user_id = :user_id
    ORDER BY id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: reports
# ---------------------------------------------------------------------------

_REPORT_COLUMNS = """
    id, reporter_id, report_type, reason, description, evidence,
    reported_user_id, reported_product_id, reported_order_id, status, action,
    admin_notes, resolved_by, resolved_at, created_at, updated_at
"""

_INSERT_REPORT_SQL = text(f"""
    INSERT INTO reports (id, reporter_id, report_type, reason, description, evidence,
        reported_user_id, reported_product_id, reported_order_id, status)
    VALUES (:id, :reporter_id, :report_type, :reason, :description,
        CAST(:evidence AS TEXT[]), :reported_user_id, :reported_product_id,
        :reported_order_id, :status)
    RETURNING {_REPORT_COLUMNS}
""")

_GET_REPORT_SQL = text(f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = :id")

_LOCK_REPORT_SQL = text(f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = :id FOR UPDATE")

_REPORT_UNDER_REVIEW_SQL = text(f"""
    UPDATE reports
    SET status = 'UNDER_REVIEW', updated_at = NOW()
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_REPORT_COLUMNS}
""")

_CLOSE_REPORT_SQL = text(f"""
    UPDATE reports
    SET status = :status, action = :action, admin_notes = :admin_notes,
        resolved_by = :resolved_by, resolved_at = NOW(), updated_at = NOW()
    WHERE id = :id AND status IN ('PENDING', 'UNDER_REVIEW')
    RETURNING {_REPORT_COLUMNS}
""")

_LIST_REPORTS_FOR_REPORTER_SQL = text(f"""
    SELECT {_REPORT_COLUMNS}
    FROM reports
    WHERE reporter_id = :reporter_id
    ORDER BY created_at DESC
    LIMIT :limit
""")

_LIST_REPORTS_SQL = text(f"""
    SELECT {_REPORT_COLUMNS}
    FROM reports
    WHERE (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:report_type AS TEXT) IS NULL OR report_type = :report_type)
    ORDER BY created_at DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_dispute(row: Any) -> Dispute:
    return Dispute(
        id=row.id,
        order_id=row.order_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        reason=row.reason,
        status=row.status,
        buyer_evidence=list(row.buyer_evidence or []),
        seller_evidence=list(row.seller_evidence or []),
        resolution=row.resolution,
        refund_amount=row.refund_amount,
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_message(row: Any) -> DisputeMessage:
    return DisputeMessage(
        id=row.id,
        dispute_id=row.dispute_id,
        sender_id=row.sender_id,
        sender_type=row.sender_type,
        message=row.message,
        attachments=list(row.attachments or []),
        created_at=row.created_at,
    )


def _row_to_penalty(row: Any) -> Penalty:
    return Penalty(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        reason=row.reason,
        points_added=row.points_added,
        issued_by=row.issued_by,
        banned_until=row.banned_until,
        dispute_id=row.dispute_id,
        report_id=row.report_id,
        created_at=row.created_at,
    )


def _row_to_report(row: Any) -> Report:
    return Report(
        id=row.id,
        reporter_id=row.reporter_id,
        report_type=row.report_type,
        reason=row.reason,
        description=row.description,
        evidence=list(row.evidence or []),
        reported_user_id=row.reported_user_id,
        reported_product_id=row.reported_product_id,
        reported_order_id=row.reported_order_id,
        status=row.status,
        action=row.action,
        admin_notes=row.admin_notes,
        resolved_by=row.resolved_by,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one(row: Any) -> Dispute | None:
    return _row_to_dispute(row) if row else None


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class DisputeRepository:
    """Concrete implementation of DisputeRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, dispute: Dispute) -> Dispute | None:
        result = await db.execute(
            _INSERT_DISPUTE_SQL,
            {
                "id": dispute.id,
                "order_id": dispute.order_id,
                "buyer_id": dispute.buyer_id,
                "seller_id": dispute.seller_id,
                "reason": dispute.reason,
                "status": dispute.status,
                "buyer_evidence": dispute.buyer_evidence,
                "seller_evidence": dispute.seller_evidence,
            },
        )
        return _one(result.fetchone())

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        result = await db.execute(_GET_DISPUTE_SQL, {"id": dispute_id})
        return _one(result.fetchone())

    async def get_for_update(self, db: AsyncSession, dispute_id: str) -> Dispute | None:
        result = await db.execute(_LOCK_DISPUTE_SQL, {"id": dispute_id})
        return _one(result.fetchone())

    async def get_by_order(self, db: AsyncSession, order_id: str) -> Dispute | None:
        result = await db.execute(_GET_BY_ORDER_SQL, {"order_id": order_id})
        return _one(result.fetchone())

    async def add_message(
        self,
        db: AsyncSession,
        dispute_id: str,
        sender_id: str,
        sender_type: str,
        message: str,
        attachments: list[str],
    ) -> DisputeMessage:
        result = await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "dispute_id": dispute_id,
                "sender_id": sender_id,
                "sender_type": sender_type,
                "message": message,
                "attachments": attachments,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Dispute message insert returned no rows")
        return _row_to_message(row)

    async def list_messages(self, db: AsyncSession, dispute_id: str) -> list[DisputeMessage]:
        result = await db.execute(_LIST_MESSAGES_SQL, {"dispute_id": dispute_id})
        return [_row_to_message(row) for row in result.fetchall()]

    async def record_seller_response(
        self, db: AsyncSession, dispute_id: str, seller_evidence: list[str]
    ) -> Dispute | None:
        result = await db.execute(
            _SELLER_RESPONSE_SQL, {"id": dispute_id, "seller_evidence": seller_evidence}
        )
        return _one(result.fetchone())

    async def resolve(
        self,
        db: AsyncSession,
        dispute_id: str,
        status: str,
        resolution: str,
        refund_amount: int,
        resolved_by: str,
    ) -> Dispute | None:
        result = await db.execute(
            _RESOLVE_SQL,
            {
                "id": dispute_id,
                "status": status,
                "resolution": resolution,
                "refund_amount": refund_amount,
                "resolved_by": resolved_by,
            },
        )
        return _one(result.fetchone())

    async def list_for_user(
        self, db: AsyncSession, user_id: str, status: str | None, limit: int
    ) -> list[Dispute]:
        result = await db.execute(
            _LIST_FOR_USER_SQL, {"user_id": user_id, "status": status, "limit": limit}
        )
        return [_row_to_dispute(row) for row in result.fetchall()]

    async def list_all(
        self, db: AsyncSession, status: str | None, limit: int
    ) -> list[Dispute]:
        result = await db.execute(_LIST_ALL_SQL, {"status": status, "limit": limit})
        return [_row_to_dispute(row) for row in result.fetchall()]


class PenaltyRepository:
    """Concrete implementation of PenaltyRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, penalty: Penalty) -> Penalty | None:
        result = await db.execute(
            _INSERT_PENALTY_SQL,
            {
                "user_id": penalty.user_id,
                "action": penalty.action,
                "reason": penalty.reason,
                "points_added": penalty.points_added,
                "issued_by": penalty.issued_by,
                "banned_until": penalty.banned_until,
                "dispute_id": penalty.dispute_id,
                "report_id": penalty.report_id,
            },
        )
        row = result.fetchone()
        return _row_to_penalty(row) if row else None

    async def list_penalties(
        self, db: AsyncSession, user_id: str | None, limit: int
    ) -> list[Penalty]:
        result = await db.execute(_LIST_PENALTIES_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_penalty(row) for row in result.fetchall()]


class ReportRepository:
    """Concrete implementation of ReportRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, report: Report) -> Report:
        result = await db.execute(
            _INSERT_REPORT_SQL,
            {
                "id": report.id,
                "reporter_id": report.reporter_id,
                "report_type": report.report_type,
                "reason": report.reason,
                "description": report.description,
                "evidence": report.evidence,
                "reported_user_id": report.reported_user_id,
                "reported_product_id": report.reported_product_id,
                "reported_order_id": report.reported_order_id,
                "status": report.status,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Report insert returned no rows")
        return _row_to_report(row)

    async def get_by_id(self, db: AsyncSession, report_id: str) -> Report | None:
        result = await db.execute(_GET_REPORT_SQL, {"id": report_id})
        row = result.fetchone()
        return _row_to_report(row) if row else None

    async def get_for_update(self, db: AsyncSession, report_id: str) -> Report | None:
        result = await db.execute(_LOCK_REPORT_SQL, {"id": report_id})
        row = result.fetchone()
        return _row_to_report(row) if row else None

    async def mark_under_review(self, db: AsyncSession, report_id: str) -> Report | None:
        result = await db.execute(_REPORT_UNDER_REVIEW_SQL, {"id": report_id})
        row = result.fetchone()
        return _row_to_report(row) if row else None

    async def close(
        self,
        db: AsyncSession,
        report_id: str,
        status: str,
        action: str | None,
        admin_notes: str,
        resolved_by: str,
    ) -> Report | None:
        result = await db.execute(
            _CLOSE_REPORT_SQL,
            {
                "id": report_id,
                "status": status,
                "action": action,
                "admin_notes": admin_notes,
                "resolved_by": resolved_by,
            },
        )
        row = result.fetchone()
        return _row_to_report(row) if row else None

    async def list_for_reporter(
        self, db: AsyncSession, reporter_id: str, limit: int
    ) -> list[Report]:
        result = await db.execute(
            _LIST_REPORTS_FOR_REPORTER_SQL, {"reporter_id": reporter_id, "limit": limit}
        )
        return [_row_to_report(row) for row in result.fetchall()]

    async def list_all(
        self, db: AsyncSession, status: str | None, report_type: str | None, limit: int
    ) -> list[Report]:
        result = await db.execute(
            _LIST_REPORTS_SQL, {"status": status, "report_type": report_type, "limit": limit}
        )
        return [_row_to_report(row) for row in result.fetchall()]
