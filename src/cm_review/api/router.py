"""cm_review REST API — buyers rate sellers and riders of completed orders."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor
from src.cm_review.application.schemas import SubmitReviewRequest
from src.cm_review.application.service import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])

_service = ReviewService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_review(
    body: SubmitReviewRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.submit_review(
        db, actor, body.order_id, body.review_type, body.rating, body.comment
    )
    return respond(request, data.model_dump(), "Review submitted")


@router.get("")
async def list_reviews(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user_id: str = Query(..., description="Whose reviews to list"),
    review_type: Literal["SELLER", "RIDER"] | None = Query(None, alias="type"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_reviews(db, user_id, review_type, limit)
    return respond(request, [r.model_dump() for r in data])


@router.get("/orders/{order_id}")
async def list_order_reviews(
    order_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_order_reviews(db, actor, order_id)
    return respond(request, [r.model_dump() for r in data])
