"""NotificationService — outbox writes share the caller's transaction.

notify() never commits: a notification exists only if the state change that
produced it was committed. Delivery (push, SMS, email) reads the table and is
out of scope here.
"""

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.datetime_utils import isoformat_or_none
from src.cm_common.errors import ResourceNotFoundError
from src.cm_notification.domain.models import Notification
from src.cm_notification.domain.repository import NotificationRepositoryProtocol
from src.cm_notification.infrastructure.persistence import NotificationRepository


class NotificationItem(BaseModel):
    id: int
    kind: str
    title: str
    message: str
    order_id: str | None
    is_read: bool
    created_at: str | None


class NotificationService:
    def __init__(self, repo: NotificationRepositoryProtocol | None = None) -> None:
        self._repo: NotificationRepositoryProtocol = repo or NotificationRepository()

    async def notify(
        self,
        db: AsyncSession,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        order_id: str | None = None,
    ) -> Notification:
        return await self._repo.insert(db, user_id, kind, title, message, order_id)

    async def list_for_user(
        self, db: AsyncSession, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationItem]:
        rows = await self._repo.list_for_user(db, user_id, unread_only, limit)
        return [
            NotificationItem(
                id=n.id,
                kind=n.kind,
                title=n.title,
                message=n.message,
                order_id=n.order_id,
                is_read=n.is_read,
                created_at=isoformat_or_none(n.created_at),
            )
            for n in rows
        ]

    async def mark_read(self, db: AsyncSession, user_id: str, notification_id: int) -> None:
        try:
            found = await self._repo.mark_read(db, user_id, notification_id)
            if not found:
                raise ResourceNotFoundError("Notification", notification_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
