"""Admin REST API."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_admin.application.service import AdminService
from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_dispute.application.schemas import (
    IssuePenaltyRequest,
    ResolveDisputeRequest,
    ResolveReportRequest,
)
from src.cm_gateway.auth.dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.post("/disputes/{dispute_id}/resolve")
async def resolve_dispute(
    dispute_id: str,
    body: ResolveDisputeRequest,
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.resolve_dispute(db, actor, dispute_id, body)
    return respond(request, data.model_dump(), "Dispute resolved")


@router.get("/disputes")
async def list_disputes(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_disputes(db, actor, status, limit)
    return respond(request, [d.model_dump() for d in data])


@router.post("/penalties", status_code=status.HTTP_201_CREATED)
async def issue_penalty(
    body: IssuePenaltyRequest,
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.issue_penalty(db, actor, body)
    return respond(request, data.model_dump(), "Penalty issued")


@router.get("/penalties")
async def list_penalties(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_penalties(db, actor, user_id, limit)
    return respond(request, [p.model_dump() for p in data])


@router.get("/reports")
async def list_reports(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None),
    report_type: str | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _service.list_reports(db, actor, status, report_type, limit)
    return respond(request, [r.model_dump() for r in data])


@router.post("/reports/{report_id}/review")
async def start_report_review(
    report_id: str,
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.start_report_review(db, actor, report_id)
    return respond(request, data.model_dump(), "Report under review")


@router.post("/reports/{report_id}/resolve")
async def resolve_report(
    report_id: str,
    body: ResolveReportRequest,
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.resolve_report(db, actor, report_id, body)
    return respond(request, data.model_dump(), "Report closed")


@router.get("/invariants")
async def verify_invariants(
    actor: Annotated[Actor, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    return respond(request, await _service.verify_invariants(db, actor))
