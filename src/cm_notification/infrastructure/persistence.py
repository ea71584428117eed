"""NotificationRepository — raw SQL outbox writes and reads."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import InternalError
from src.cm_notification.domain.models import Notification

_COLUMNS = "id, user_id, kind, title, message, order_id, is_read, created_at"

_INSERT_SQL = text(f"""
    INSERT INTO notifications (user_id, kind, title, message, order_id)
    VALUES (:user_id, :kind, :title, :message, :order_id)
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM notifications
    WHERE user_id = :user_id
      AND (NOT :unread_only OR is_read = FALSE)
    ORDER BY id DESC
    LIMIT :limit
""")

_MARK_READ_SQL = text("""
    UPDATE notifications
    SET is_read = TRUE
    WHERE id = :id AND user_id = :user_id
    RETURNING id
""")


def _row_to_notification(row: Any) -> Notification:
    return Notification(
        id=row.id,
        user_id=row.user_id,
        kind=row.kind,
        title=row.title,
        message=row.message,
        order_id=row.order_id,
        is_read=row.is_read,
        created_at=row.created_at,
    )


class NotificationRepository:
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        order_id: str | None,
    ) -> Notification:
        result = await db.execute(
            _INSERT_SQL,
            {
                "user_id": user_id,
                "kind": kind,
                "title": title,
                "message": message,
                "order_id": order_id,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Notification insert returned no rows")
        return _row_to_notification(row)

    async def list_for_user(
        self, db: AsyncSession, user_id: str, unread_only: bool, limit: int
    ) -> list[Notification]:
        result = await db.execute(
            _LIST_SQL, {"user_id": user_id, "unread_only": unread_only, "limit": limit}
        )
        return [_row_to_notification(row) for row in result.fetchall()]

    async def mark_read(
        self, db: AsyncSession, user_id: str, notification_id: int
    ) -> bool:
        result = await db.execute(
            _MARK_READ_SQL, {"id": notification_id, "user_id": user_id}
        )
        return result.fetchone() is not None
