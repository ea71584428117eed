from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_notification.domain.models import Notification


class NotificationRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        kind: str,
        title: str,
        message: str,
        order_id: str | None,
    ) -> Notification: ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, unread_only: bool, limit: int
    ) -> list[Notification]: ...

    async def mark_read(
        self, db: AsyncSession, user_id: str, notification_id: int
    ) -> bool: ...
