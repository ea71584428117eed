"""cm_order REST API — buyer side of the order lifecycle."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor
from src.cm_order.application.schemas import CreateOrderRequest
from src.cm_order.application.service import OrderApplicationService

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderApplicationService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    body: CreateOrderRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_order(
        db, actor, body.product_id, body.quantity, body.delivery_address
    )
    return respond(request, data.model_dump(), "Order created")


@router.get("")
async def list_orders(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    as_role: Literal["BUYER", "SELLER", "RIDER"] = Query("BUYER"),
    status: str | None = Query(None, description="Filter by order status"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_orders(db, actor, as_role, status, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_order(db, actor, order_id)
    return respond(request, data.model_dump())


@router.post("/{order_id}/confirm-delivery")
async def confirm_delivery(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.confirm_delivery(db, actor, order_id)
    return respond(request, data.model_dump(), "Delivery confirmed, payment released")
