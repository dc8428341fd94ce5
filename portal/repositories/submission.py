"""Submission repository: lookups by id, code, nested document and period."""

from __future__ import annotations

from collections import Counter

from sqlalchemy import and_, func, or_, select

from portal.domain.statuses import FinalDecision, SubmissionStatus
from portal.domain.submission import Submission, SubmissionDocument
from portal.repositories.base import BaseRepository


def _effective_status_clause(status: SubmissionStatus):
    """SQL equivalent of ``Submission.effective_status == status``."""
    overlay = Submission.final_decision == FinalDecision.CHANGES_REQUIRED
    if status is SubmissionStatus.REQUIRES_RESUBMISSION:
        return or_(Submission.status == status, overlay)
    return and_(
        Submission.status == status,
        or_(Submission.final_decision.is_(None), ~overlay),
    )


class SubmissionRepository(BaseRepository[Submission]):
    model = Submission

    async def get_by_id_or_code(self, ref: str) -> Submission | None:
        result = await self._session.execute(
            self._base_query().where(
                or_(Submission.id == ref, Submission.submission_code == ref)
            )
        )
        return result.scalars().first()

    async def get_by_document_id(self, document_id: str) -> Submission | None:
        """The submission that contains the nested document *document_id*."""
        result = await self._session.execute(
            self._base_query()
            .join(SubmissionDocument, SubmissionDocument.submission_id == Submission.id)
            .where(SubmissionDocument.id == document_id)
        )
        return result.scalars().first()

    async def find_for_period(self, vendor_id: str, year: int, month: int) -> Submission | None:
        result = await self._session.execute(
            self._base_query().where(
                Submission.vendor_id == vendor_id,
                Submission.period_year == year,
                Submission.period_month == month,
            )
        )
        return result.scalars().first()

    async def search(
        self,
        *,
        vendor_id: str | None = None,
        consultant_email: str | None = None,
        year: int | None = None,
        month: int | None = None,
        status: SubmissionStatus | None = None,
        offset: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order: str = "desc",
    ) -> tuple[list[Submission], int]:
        q = self._base_query()
        if vendor_id:
            q = q.where(Submission.vendor_id == vendor_id)
        if consultant_email:
            q = q.where(func.lower(Submission.consultant_email) == consultant_email.lower())
        if year is not None:
            q = q.where(Submission.period_year == year)
        if month is not None:
            q = q.where(Submission.period_month == month)
        if status is not None:
            q = q.where(_effective_status_clause(status))
        return await self._paginate(q, offset=offset, limit=limit, order_by=order_by, order=order)

    async def status_counts(
        self, *, year: int | None = None, month: int | None = None
    ) -> Counter[SubmissionStatus]:
        """Number of submissions per effective status, optionally for one period."""
        q = select(Submission.status, Submission.final_decision, func.count()).where(
            Submission.deleted_at.is_(None)
        )
        if year is not None:
            q = q.where(Submission.period_year == year)
        if month is not None:
            q = q.where(Submission.period_month == month)
        q = q.group_by(Submission.status, Submission.final_decision)

        counts: Counter[SubmissionStatus] = Counter()
        for status, final_decision, count in (await self._session.execute(q)).all():
            if final_decision is FinalDecision.CHANGES_REQUIRED:
                status = SubmissionStatus.REQUIRES_RESUBMISSION
            counts[SubmissionStatus(status)] += count
        return counts
