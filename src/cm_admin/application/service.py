"""Admin application service — dispute and report resolution, penalties, reconciliation."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_admin.domain.reconciliation import verify_ledger_invariants
from src.cm_common.actor import Actor
from src.cm_common.errors import NotAuthorizedError
from src.cm_dispute.application.penalty_service import PenaltyService
from src.cm_dispute.application.report_service import ReportService
from src.cm_dispute.application.schemas import (
    DisputeResponse,
    IssuePenaltyRequest,
    PenaltyResponse,
    ReportResponse,
    ResolveDisputeRequest,
    ResolveReportRequest,
)
from src.cm_dispute.application.service import DisputeService


class AdminService:
    def __init__(
        self,
        disputes: DisputeService | None = None,
        penalties: PenaltyService | None = None,
        reports: ReportService | None = None,
    ) -> None:
        self._disputes = disputes or DisputeService()
        self._penalties = penalties or PenaltyService()
        self._reports = reports or ReportService(penalties=self._penalties)

    async def resolve_dispute(
        self, db: AsyncSession, actor: Actor, dispute_id: str, body: ResolveDisputeRequest
    ) -> DisputeResponse:
        return await self._disputes.resolve(
            db,
            actor,
            dispute_id,
            status=body.status,
            resolution=body.resolution,
            refund_amount=body.refund_amount,
            penalize_buyer=body.penalize_buyer,
            penalize_seller=body.penalize_seller,
            penalty_reason=body.penalty_reason,
        )

    async def list_disputes(
        self, db: AsyncSession, actor: Actor, status: str | None, limit: int
    ) -> list[DisputeResponse]:
        return await self._disputes.list_disputes(db, actor, status, limit)

    async def issue_penalty(
        self, db: AsyncSession, actor: Actor, body: IssuePenaltyRequest
    ) -> PenaltyResponse:
        return await self._penalties.issue_penalty(
            db,
            actor,
            body.user_id,
            body.action,
            body.reason,
            dispute_id=body.dispute_id,
        )

    async def list_penalties(
        self, db: AsyncSession, actor: Actor, user_id: str | None, limit: int
    ) -> list[PenaltyResponse]:
        return await self._penalties.list_penalties(db, actor, user_id, limit)

    async def list_reports(
        self,
        db: AsyncSession,
        actor: Actor,
        status: str | None,
        report_type: str | None,
        limit: int,
    ) -> list[ReportResponse]:
        return await self._reports.list_reports(db, actor, status, report_type, limit)

    async def start_report_review(
        self, db: AsyncSession, actor: Actor, report_id: str
    ) -> ReportResponse:
        return await self._reports.start_review(db, actor, report_id)

    async def resolve_report(
        self, db: AsyncSession, actor: Actor, report_id: str, body: ResolveReportRequest
    ) -> ReportResponse:
        return await self._reports.resolve_report(
            db,
            actor,
            report_id,
            status=body.status,
            admin_notes=body.admin_notes,
            action=body.action,
            penalize_reported=body.penalize_reported,
            penalty_reason=body.penalty_reason,
        )

    async def verify_invariants(self, db: AsyncSession, actor: Actor) -> dict[str, Any]:
        if not actor.is_admin:
            raise NotAuthorizedError("Admin access required")
        violations = await verify_ledger_invariants(db)
        return {"ok": len(violations) == 0, "violations": violations}
