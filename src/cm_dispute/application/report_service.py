"""ReportService — users flag misconduct, admins close the report.

The reported user is derived from the target wherever one exists (a product's
seller, an order's rider) so a report cannot name an unrelated account.
Resolving with a penalty writes the report status, the penalty row (carrying
the report id) and the reporter's notification in one transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_catalog.domain.repository import ProductRepositoryProtocol
from src.cm_catalog.infrastructure.persistence import ProductRepository
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import NotificationKind, PenaltyAction, ReportStatus, ReportType
from src.cm_common.errors import (
    InvalidReportError,
    NotAuthorizedError,
    NotYourOrderError,
    OrderNotFoundError,
    ProductNotFoundError,
    ReportAlreadyResolvedError,
    ReportNotFoundError,
)
from src.cm_common.id_generator import generate_id
from src.cm_dispute.application.penalty_service import PenaltyService
from src.cm_dispute.application.schemas import CreateReportRequest, ReportResponse
from src.cm_dispute.domain.models import Report
from src.cm_dispute.domain.penalty_policy import (
    banned_until_for,
    penalty_for_report,
    points_for,
)
from src.cm_dispute.domain.repository import ReportRepositoryProtocol
from src.cm_dispute.infrastructure.persistence import ReportRepository
from src.cm_notification.application.service import NotificationService
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(
        self,
        repo: ReportRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        product_repo: ProductRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        penalties: PenaltyService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._repo: ReportRepositoryProtocol = repo or ReportRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._products: ProductRepositoryProtocol = product_repo or ProductRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._notifier = notifier or NotificationService()
        self._penalties = penalties or PenaltyService(
            account_repo=self._accounts, notifier=self._notifier
        )

    # ------------------------------------------------------------------
    # Reporters
    # ------------------------------------------------------------------

    async def create_report(
        self, db: AsyncSession, actor: Actor, body: CreateReportRequest
    ) -> ReportResponse:
        report_type = ReportType(body.report_type)
        report = Report(
            id=generate_id(),
            reporter_id=actor.user_id,
            report_type=report_type.value,
            reason=body.reason,
            description=body.description,
            evidence=list(body.evidence),
        )
        try:
            await self._fill_target(db, actor, report_type, body, report)
            if report.reported_user_id == actor.user_id:
                raise InvalidReportError("you cannot report yourself")
            report = await self._repo.insert(db, report)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Report %s (%s) filed by %s against %s",
            report.id, report.report_type, actor.user_id, report.reported_user_id,
        )
        return ReportResponse.from_domain(report)

    async def list_my_reports(
        self, db: AsyncSession, actor: Actor, limit: int
    ) -> list[ReportResponse]:
        rows = await self._repo.list_for_reporter(db, actor.user_id, limit)
        return [ReportResponse.from_domain(r) for r in rows]

    async def get_report(self, db: AsyncSession, actor: Actor, report_id: str) -> ReportResponse:
        report = await self._repo.get_by_id(db, report_id)
        # Reports are private to their author; others get a plain 404
        if report is None or (report.reporter_id != actor.user_id and not actor.is_admin):
            raise ReportNotFoundError(report_id)
        return ReportResponse.from_domain(report)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def list_reports(
        self,
        db: AsyncSession,
        actor: Actor,
        status: str | None,
        report_type: str | None,
        limit: int,
    ) -> list[ReportResponse]:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can list reports")
        rows = await self._repo.list_all(db, status, report_type, limit)
        return [ReportResponse.from_domain(r) for r in rows]

    async def start_review(
        self, db: AsyncSession, actor: Actor, report_id: str
    ) -> ReportResponse:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can review reports")
        try:
            report = await self._repo.mark_under_review(db, report_id)
            if report is None:
                if await self._repo.get_by_id(db, report_id) is None:
                    raise ReportNotFoundError(report_id)
                raise ReportAlreadyResolvedError(report_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ReportResponse.from_domain(report)

    async def resolve_report(
        self,
        db: AsyncSession,
        actor: Actor,
        report_id: str,
        status: str,
        admin_notes: str,
        action: str | None = None,
        penalize_reported: bool = False,
        penalty_reason: str = "",
    ) -> ReportResponse:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can resolve reports")
        target = ReportStatus(status)
        if target not in (ReportStatus.RESOLVED, ReportStatus.DISMISSED):
            raise InvalidReportError(f"cannot close a report as {status}")
        if target == ReportStatus.DISMISSED and action is not None:
            raise InvalidReportError("a dismissed report carries no action")
        if penalize_reported and action is None:
            raise InvalidReportError("a penalty needs an action")

        try:
            report = await self._repo.get_for_update(db, report_id)
            if report is None:
                raise ReportNotFoundError(report_id)
            if report.is_closed:
                raise ReportAlreadyResolvedError(report_id)
            if penalize_reported and report.reported_user_id is None:
                raise InvalidReportError("the report names no user to penalize")

            closed = await self._repo.close(
                db, report_id, target.value, action, admin_notes, actor.user_id
            )
            if closed is None:
                raise ReportAlreadyResolvedError(report_id)

            if penalize_reported:
                penalty_action = penalty_for_report(action)
                await self._penalties.apply(
                    db,
                    user_id=report.reported_user_id,
                    action=penalty_action,
                    points=points_for(penalty_action),
                    reason=penalty_reason or report.reason,
                    issued_by=actor.user_id,
                    banned_until=banned_until_for(penalty_action, utc_now()),
                    is_warning=penalty_action == PenaltyAction.WARNING,
                    report_id=report.id,
                )

            await self._notifier.notify(
                db,
                report.reporter_id,
                NotificationKind.REPORT_RESOLVED,
                "Report reviewed",
                f"Your report was closed: {target.value}.",
                order_id=report.reported_order_id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Report %s closed as %s by %s (action=%s, penalized=%s)",
            report_id, target.value, actor.user_id, action, penalize_reported,
        )
        return ReportResponse.from_domain(closed)

    # ------------------------------------------------------------------

    async def _fill_target(
        self,
        db: AsyncSession,
        actor: Actor,
        report_type: ReportType,
        body: CreateReportRequest,
        report: Report,
    ) -> None:
        if report_type == ReportType.USER:
            if body.reported_user_id is None:
                raise InvalidReportError("a user report needs reported_user_id")
            if await self._accounts.get_account(db, body.reported_user_id) is None:
                raise InvalidReportError("the reported user does not exist")
            report.reported_user_id = body.reported_user_id
            return

        if report_type == ReportType.PRODUCT:
            if body.reported_product_id is None:
                raise InvalidReportError("a product report needs reported_product_id")
            product = await self._products.get_by_id(db, body.reported_product_id)
            if product is None:
                raise ProductNotFoundError(body.reported_product_id)
            report.reported_product_id = product.id
            report.reported_user_id = product.seller_id
            return

        # ORDER and RIDER reports come from someone who took part in the order
        if body.reported_order_id is None:
            raise InvalidReportError(f"a {report_type.value.lower()} report needs reported_order_id")
        order = await self._orders.get_by_id(db, body.reported_order_id)
        if order is None:
            raise OrderNotFoundError(body.reported_order_id)
        participants = {order.buyer_id, order.seller_id, order.rider_id}
        if actor.user_id not in participants:
            raise NotYourOrderError(order.id)
        report.reported_order_id = order.id

        if report_type == ReportType.RIDER:
            if order.rider_id is None:
                raise InvalidReportError("the order has no rider")
            report.reported_user_id = order.rider_id
        elif body.reported_user_id is not None:
            if body.reported_user_id not in participants:
                raise InvalidReportError("the reported user is not part of this order")
            report.reported_user_id = body.reported_user_id
