"""Notification outbox row."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Notification:
    id: int
    user_id: str
    kind: str        # NotificationKind value
    title: str
    message: str
    order_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None
