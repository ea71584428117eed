"""Rider endpoints: browse paid orders, accept one, report delivery progress."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import require_rider
from src.cm_order.application.schemas import UpdateDeliveryStatusRequest
from src.cm_order.application.service import OrderApplicationService

router = APIRouter(prefix="/riders", tags=["riders"])

_service = OrderApplicationService()


@router.get("/available-orders")
async def available_orders(
    actor: Annotated[Actor, Depends(require_rider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_available_orders(db, actor, limit)
    return respond(request, [o.model_dump() for o in data])


@router.post("/orders/{order_id}/accept")
async def accept_order(
    order_id: str,
    actor: Annotated[Actor, Depends(require_rider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.accept_order(db, actor, order_id)
    return respond(request, data.model_dump(), "Delivery accepted")


@router.post("/orders/{order_id}/status")
async def update_status(
    order_id: str,
    body: UpdateDeliveryStatusRequest,
    actor: Annotated[Actor, Depends(require_rider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_delivery_status(db, actor, order_id, body.status)
    return respond(request, data.model_dump())
