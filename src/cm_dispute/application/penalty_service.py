"""PenaltyService — records a penalty and applies its effect to the account.

apply() runs inside the caller's transaction (dispute and report resolution use
it); issue_penalty() is the admin entry point and owns its own transaction.
Report penalties only come from resolving the report, so the report row exists.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_account.domain.repository import AccountRepositoryProtocol
from src.cm_account.domain.trust import compute_trust_level, demote
from src.cm_account.infrastructure.persistence import AccountRepository
from src.cm_common.actor import Actor
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import NotificationKind, PenaltyAction, TrustLevel
from src.cm_common.errors import (
    AccountNotFoundError,
    DisputeNotFoundError,
    DuplicatePenaltyError,
    NotAuthorizedError,
)
from src.cm_dispute.application.schemas import PenaltyResponse
from src.cm_dispute.domain.models import Penalty
from src.cm_dispute.domain.penalty_policy import (
    banned_until_for,
    evaluate_auto_suspension,
    points_for,
)
from src.cm_dispute.domain.repository import (
    DisputeRepositoryProtocol,
    PenaltyRepositoryProtocol,
)
from src.cm_dispute.infrastructure.persistence import DisputeRepository, PenaltyRepository
from src.cm_notification.application.service import NotificationService

logger = logging.getLogger(__name__)


class PenaltyService:
    def __init__(
        self,
        repo: PenaltyRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        notifier: NotificationService | None = None,
        dispute_repo: DisputeRepositoryProtocol | None = None,
    ) -> None:
        self._repo: PenaltyRepositoryProtocol = repo or PenaltyRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._notifier = notifier or NotificationService()
        self._disputes: DisputeRepositoryProtocol = dispute_repo or DisputeRepository()

    async def issue_penalty(
        self,
        db: AsyncSession,
        actor: Actor,
        user_id: str,
        action: str,
        reason: str,
        dispute_id: str | None = None,
    ) -> PenaltyResponse:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can issue penalties")
        penalty_action = PenaltyAction(action)
        try:
            if dispute_id is not None:
                dispute = await self._disputes.get_by_id(db, dispute_id)
                if dispute is None or not dispute.involves(user_id):
                    raise DisputeNotFoundError(dispute_id)
            penalty = await self.apply(
                db,
                user_id=user_id,
                action=penalty_action,
                points=points_for(penalty_action),
                reason=reason,
                issued_by=actor.user_id,
                banned_until=banned_until_for(penalty_action, utc_now()),
                is_warning=penalty_action == PenaltyAction.WARNING,
                dispute_id=dispute_id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return PenaltyResponse.from_domain(penalty)

    async def apply(
        self,
        db: AsyncSession,
        user_id: str,
        action: PenaltyAction,
        points: int,
        reason: str,
        issued_by: str,
        banned_until: datetime | None,
        is_warning: bool,
        dispute_id: str | None = None,
        report_id: str | None = None,
    ) -> Penalty:
        """Write the penalty row and its account effects; never commits."""
        if await self._accounts.get_account(db, user_id) is None:
            raise AccountNotFoundError(user_id)
        penalty = await self._repo.insert(
            db,
            Penalty(
                id=0,
                user_id=user_id,
                action=action.value,
                reason=reason,
                points_added=points,
                issued_by=issued_by,
                banned_until=banned_until,
                dispute_id=dispute_id,
                report_id=report_id,
            ),
        )
        if penalty is None:
            raise DuplicatePenaltyError(user_id)

        account = await self._accounts.add_penalty(
            db, user_id, points, is_warning, banned_until
        )

        if action == PenaltyAction.TRUST_LEVEL_DOWNGRADE:
            current = compute_trust_level(
                account.avg_rating, account.total_reviews, account.trust_downgrades
            )
            # At BRONZE there is nothing left to take; the count stays put so a
            # later rating increase is not pre-emptively demoted.
            if current != TrustLevel.BRONZE:
                account = await self._accounts.save_trust(
                    db, user_id, demote(current).value, account.trust_downgrades + 1
                )

        auto_until = evaluate_auto_suspension(
            account.penalty_points,
            settings.PENALTY_AUTO_SUSPEND_POINTS,
            settings.PENALTY_AUTO_SUSPEND_DAYS,
            utc_now(),
        )
        if auto_until is not None:
            await self._accounts.suspend(db, user_id, auto_until)
            logger.warning(
                "User %s auto-suspended at %d penalty points", user_id, account.penalty_points
            )

        await self._notifier.notify(
            db,
            user_id,
            NotificationKind.PENALTY_ISSUED,
            "Penalty issued",
            f"{action.value}: {reason}",
        )
        logger.info(
            "Penalty %s issued to %s by %s (+%d points)",
            action.value, user_id, issued_by, points,
        )
        return penalty

    async def list_penalties(
        self, db: AsyncSession, actor: Actor, user_id: str | None, limit: int
    ) -> list[PenaltyResponse]:
        if not actor.is_admin:
            raise NotAuthorizedError("Only admins can list penalties")
        rows = await self._repo.list_penalties(db, user_id, limit)
        return [PenaltyResponse.from_domain(p) for p in rows]
