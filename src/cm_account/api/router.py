"""cm_account REST API — all endpoints require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.application.schemas import WithdrawRequest
from src.cm_account.application.service import AccountApplicationService
from src.cm_common.actor import Actor
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, respond
from src.cm_gateway.auth.dependencies import get_current_actor
from src.cm_payment.domain.models import BankDetails

router = APIRouter(prefix="/account", tags=["account"])

_service = AccountApplicationService()


@router.get("/balance")
async def get_balance(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, actor)
    return respond(request, data.model_dump())


@router.get("/profile")
async def get_profile(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    user_id: str | None = Query(None, description="Another user's public profile"),
) -> ApiResponse:
    data = await _service.get_profile(db, user_id or actor.user_id)
    return respond(request, data.model_dump())


@router.post("/withdraw")
async def withdraw(
    body: WithdrawRequest,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    bank = BankDetails(
        account_name=body.account_name,
        account_number=body.account_number,
        bank_code=body.bank_code,
    )
    data = await _service.withdraw(db, actor, body.amount_kobo, bank, body.idempotency_key)
    return respond(request, data.model_dump(), "Withdrawal initiated")


@router.get("/withdrawals")
async def list_withdrawals(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    items = await _service.list_withdrawals(db, actor, limit)
    return respond(request, [i.model_dump() for i in items])


@router.post("/withdrawals/{reference}/reconcile")
async def reconcile_withdrawal(
    reference: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.reconcile_withdrawal(db, actor, reference)
    return respond(request, data.model_dump())


@router.get("/ledger")
async def list_ledger(
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by LedgerEntryType"),
) -> ApiResponse:
    data = await _service.list_ledger(db, actor, cursor, limit, entry_type)
    return respond(request, data.model_dump())
