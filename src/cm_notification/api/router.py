"""cm_notification REST API — the caller's own outbox."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor
from src.cm_notification.application.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])

_service = NotificationService()


@router.get("")
async def list_notifications(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    items = await _service.list_for_user(db, actor.user_id, unread_only, limit)
    return respond(request, [i.model_dump() for i in items])


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.mark_read(db, actor.user_id, notification_id)
    return respond(request, {"id": notification_id, "is_read": True})
