"""cm_dispute REST API — parties open and discuss disputes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_dispute.application.schemas import DisputeMessageRequest, OpenDisputeRequest
from src.cm_dispute.application.service import DisputeService
from src.cm_gateway.auth.dependencies import get_current_actor

router = APIRouter(prefix="/disputes", tags=["disputes"])

_service = DisputeService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_dispute(
    body: OpenDisputeRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_dispute(db, actor, body.order_id, body.reason, body.evidence)
    return respond(request, data.model_dump(), "Dispute opened")


@router.get("")
async def list_disputes(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None, description="Filter by dispute status"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_disputes(db, actor, status, limit)
    return respond(request, [d.model_dump() for d in data])


@router.get("/{dispute_id}")
async def get_dispute(
    dispute_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_dispute(db, actor, dispute_id)
    return respond(request, data.model_dump())


@router.get("/{dispute_id}/messages")
async def list_messages(
    dispute_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_messages(db, actor, dispute_id)
    return respond(request, [m.model_dump() for m in data])


@router.post("/{dispute_id}/messages", status_code=status.HTTP_201_CREATED)
async def post_message(
    dispute_id: str,
    body: DisputeMessageRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.respond(
        db, actor, dispute_id, body.message, body.attachments, body.seller_evidence
    )
    return respond(request, data.model_dump())
