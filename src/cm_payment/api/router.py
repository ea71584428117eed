"""cm_payment REST API — gateway checkout and verification callback."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor
from src.cm_order.application.service import OrderApplicationService
from src.cm_payment.application.schemas import InitializePaymentRequest

router = APIRouter(prefix="/payments", tags=["payments"])

_orders = OrderApplicationService()


@router.post("/initialize")
async def initialize_payment(
    body: InitializePaymentRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _orders.initialize_payment(db, actor, body.order_id, str(body.email))
    return respond(request, data.model_dump())


# The gateway redirects the buyer here after checkout; no bearer token is
# required because the reference is re-verified with the gateway itself.
@router.get("/verify")
async def verify_payment(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    reference: str = Query(..., min_length=1, max_length=128),
) -> ApiResponse:
    data = await _orders.confirm_payment(db, reference)
    return respond(request, data.model_dump(), "Payment verified")
