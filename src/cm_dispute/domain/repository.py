"""Repository Protocols for disputes, dispute messages, penalties and reports.

Every mutating method runs inside the caller's transaction and never commits.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_dispute.domain.models import Dispute, DisputeMessage, Penalty, Report


class DisputeRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, dispute: Dispute) -> Dispute | None:
        """Returns None when the order already has a dispute."""
        ...

    async def get_by_id(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def get_for_update(self, db: AsyncSession, dispute_id: str) -> Dispute | None: ...

    async def get_by_order(self, db: AsyncSession, order_id: str) -> Dispute | None: ...

    async def add_message(
        self,
        db: AsyncSession,
        dispute_id: str,
        sender_id: str,
        sender_type: str,
        message: str,
        attachments: list[str],
    ) -> DisputeMessage: ...

    async def list_messages(self, db: AsyncSession, dispute_id: str) -> list[DisputeMessage]: ...

    async def record_seller_response(
        self, db: AsyncSession, dispute_id: str, seller_evidence: list[str]
    ) -> Dispute | None:
        """OPEN → UNDER_REVIEW and store evidence; None if already resolved."""
        ...

    async def resolve(
        self,
        db: AsyncSession,
        dispute_id: str,
        status: str,
        resolution: str,
        refund_amount: int,
        resolved_by: str,
    ) -> Dispute | None:
        """Compare-and-set on an unresolved status; None if someone resolved it first."""
        ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, status: str | None, limit: int
    ) -> list[Dispute]: ...

    async def list_all(
        self, db: AsyncSession, status: str | None, limit: int
    ) -> list[Dispute]: ...


class PenaltyRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, penalty: Penalty) -> Penalty | None:
        """Returns None when a penalty for the same (user, cause) already exists."""
        ...

    async def list_penalties(
        self, db: AsyncSession, user_id: str | None, limit: int
    ) -> list[Penalty]: ...


class ReportRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, report: Report) -> Report: ...

    async def get_by_id(self, db: AsyncSession, report_id: str) -> Report | None: ...

    async def get_for_update(self, db: AsyncSession, report_id: str) -> Report | None: ...

    async def mark_under_review(self, db: AsyncSession, report_id: str) -> Report | None:
        """PENDING → UNDER_REVIEW; None if the report is no longer PENDING."""
        ...

    async def close(
        self,
        db: AsyncSession,
        report_id: str,
        status: str,
        action: str | None,
        admin_notes: str,
        resolved_by: str,
    ) -> Report | None:
        """Compare-and-set on an open status; None if someone closed it first."""
        ...

    async def list_for_reporter(
        self, db: AsyncSession, reporter_id: str, limit: int
    ) -> list[Report]: ...

    async def list_all(
        self, db: AsyncSession, status: str | None, report_type: str | None, limit: int
    ) -> list[Report]: ...
