"""cm_dispute REST API — users file reports and follow their own."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_dispute.application.report_service import ReportService
from src.cm_dispute.application.schemas import CreateReportRequest
from src.cm_gateway.auth.dependencies import get_current_actor

router = APIRouter(prefix="/reports", tags=["reports"])

_service = ReportService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    body: CreateReportRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_report(db, actor, body)
    return respond(request, data.model_dump(), "Report submitted")


@router.get("")
async def list_my_reports(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_my_reports(db, actor, limit)
    return respond(request, [r.model_dump() for r in data])


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_report(db, actor, report_id)
    return respond(request, data.model_dump())
