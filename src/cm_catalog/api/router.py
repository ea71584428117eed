"""cm_catalog REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_catalog.application.schemas import CreateProductRequest, RestockRequest
from src.cm_catalog.application.service import ProductApplicationService
from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor

router = APIRouter(prefix="/products", tags=["products"])

_service = ProductApplicationService()


class ToggleRequest(BaseModel):
    is_active: bool


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    body: CreateProductRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_product(db, actor, body)
    return respond(request, data.model_dump())


@router.get("")
async def list_products(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    seller_id: str | None = Query(None),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_products(db, seller_id, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_product(db, product_id)
    return respond(request, data.model_dump())


@router.post("/{product_id}/restock")
async def restock(
    product_id: str,
    body: RestockRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.restock(db, actor, product_id, body.quantity)
    return respond(request, data.model_dump())


@router.post("/{product_id}/toggle")
async def toggle(
    product_id: str,
    body: ToggleRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_active(db, actor, product_id, body.is_active)
    return respond(request, data.model_dump())
