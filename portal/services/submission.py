"""Submission service: the workflow operations exposed to the HTTP layer.

Each method is one atomic unit of work on one submission: load it fresh,
run the state machine against the loaded state, flush. The version counter
on ``Submission`` makes a concurrent writer fail at flush time with
``ConcurrentModificationError``; nothing is retried here.

Methods return an ``Outcome`` carrying the notification events and the
artifact refs to release. The caller acts on both only after commit.
"""


import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from portal.core.actor import Actor, Role
from portal.core.exceptions import (
    AppException,
    AuthorizationError,
    ConcurrentModificationError,
    ConflictError,
    InfrastructureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from portal.core.pagination import PaginationParams
from portal.domain.statuses import FinalDecision, ReviewDecision, SubmissionStatus
from portal.domain.submission import Submission, SubmissionDocument
from portal.repositories.submission import SubmissionRepository
from portal.schemas.document import DocumentOwnerOut, DocumentView
from portal.schemas.submission import (
    BulkDecisionResult,
    DocumentUpload,
    ResubmitIn,
    StatusCountOut,
    SubmissionCreate,
)
from portal.services import document_workflow
from portal.services.document_types import parse_month
from portal.services.document_workflow import REVIEWABLE_STATUSES, TransitionResult
from portal.services.notifications import NotificationEvent
from portal.services.reconciliation import ReconciliationAdapter
from portal.services.resubmission import ResubmissionHandler
from portal.services.submission_aggregate import (
    ArtifactRef,
    ConsultantSnapshot,
    Period,
    ensure_owner,
    new_submission,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    value: T
    events: list[NotificationEvent] = field(default_factory=list)
    released_artifacts: list[str] = field(default_factory=list)

    @classmethod
    def of(cls, value: T, result: TransitionResult) -> "Outcome[T]":
        return cls(value, list(result.events), list(result.released_artifacts))


def _ensure_visible(vendor_id: str, viewer: Actor | None, what: str) -> None:
    """Vendors only read what they own; every other role reads everything."""
    if viewer is not None and viewer.role is Role.VENDOR and viewer.id != vendor_id:
        raise AuthorizationError(f"Not authorized to access {what}")


def _artifact(body) -> ArtifactRef:
    return ArtifactRef(
        storage_ref=body.storage_ref,
        file_name=body.file_name,
        file_size_bytes=body.file_size_bytes,
        file_type=body.file_type,
    )


class SubmissionService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._repo = SubmissionRepository(session)
        self._adapter = ReconciliationAdapter(session)
        self._resubmissions = ResubmissionHandler(session)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _writing(self, submission: Submission) -> AsyncIterator[None]:
        """Flush inside the block and translate datastore failures."""
        # A failed flush expires the instance; read the code while it is loaded
        code = submission.submission_code
        try:
            yield
            await self._session.flush()
        except StaleDataError:
            raise ConcurrentModificationError("Submission", code) from None
        except SQLAlchemyError as exc:
            logger.exception("Datastore failure writing %s", code)
            raise InfrastructureError() from exc

    async def _apply(self, submission: Submission, transition) -> TransitionResult:
        async with self._writing(submission):
            result = transition()
        return result

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create_submission(self, actor: Actor, data: SubmissionCreate) -> Outcome[Submission]:
        if actor.is_admin:
            if not data.vendor_id:
                raise ValidationError("vendorId is required when creating on a vendor's behalf")
            vendor_id = data.vendor_id
        else:
            if data.vendor_id and data.vendor_id != actor.id:
                raise AuthorizationError("Vendors can only create their own submissions")
            vendor_id = actor.id

        period = Period.parse(data.period_year, data.period_month)
        existing = await self._repo.find_for_period(vendor_id, period.year, period.month)
        if existing is not None:
            raise ConflictError(
                f"Vendor {vendor_id} already has submission {existing.submission_code} "
                f"for {period.month:02d}/{period.year}"
            )

        submission = new_submission(
            vendor_id,
            period,
            ConsultantSnapshot(name=data.consultant_name, email=data.consultant_email),
            invoice_no=data.invoice_no,
            work_location=data.work_location,
        )
        async with self._writing(submission):
            await self._repo.add(submission)
        logger.info("Created submission %s for vendor %s", submission.submission_code, vendor_id)
        return Outcome(submission)

    async def get_submission_status(self, ref: str, viewer: Actor | None = None) -> Submission:
        """Submission by id or code, or the submission owning document *ref*.

        A vendor *viewer* only sees their own submissions.
        """
        submission = await self._repo.get_by_id_or_code(ref)
        if submission is None:
            view = await self._adapter.find(ref)
            if view is None or not view.submission_id:
                raise NotFoundError("Submission", ref)
            submission = await self._adapter.get_submission(view.submission_id)
        if viewer is not None and viewer.role is Role.VENDOR:
            ensure_owner(submission, viewer, allow_admin=False)
        return submission

    async def get_document(self, ref: str, viewer: Actor | None = None) -> DocumentView:
        view = await self._adapter.resolve(ref)
        _ensure_visible(view.vendor_id, viewer, f"document {ref}")
        return view

    async def find_document_owner(
        self, document_id: str, viewer: Actor | None = None
    ) -> DocumentOwnerOut:
        submission = await self._repo.get_by_document_id(document_id)
        if submission is None:
            raise NotFoundError("Document", document_id)
        _ensure_visible(submission.vendor_id, viewer, f"document {document_id}")
        document = next(d for d in submission.documents if d.id == document_id)
        return DocumentOwnerOut(
            document_id=document.id,
            document_type=document.document_type,
            submission_id=submission.id,
            submission_code=submission.submission_code,
            vendor_id=submission.vendor_id,
        )

    async def list_submissions(
        self,
        actor: Actor,
        pagination: PaginationParams,
        *,
        vendor_id: str | None = None,
        consultant_email: str | None = None,
        year: int | None = None,
        month: int | str | None = None,
        status: SubmissionStatus | None = None,
    ) -> tuple[list[Submission], int]:
        if actor.role is Role.VENDOR:
            # Vendors only ever see their own submissions
            vendor_id = actor.id
        return await self._repo.search(
            vendor_id=vendor_id,
            consultant_email=consultant_email,
            year=year,
            month=parse_month(month) if month is not None else None,
            status=status,
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def period_status_counts(
        self, *, year: int | None = None, month: int | str | None = None
    ) -> StatusCountOut:
        month_number = parse_month(month) if month is not None else None
        counts = await self._repo.status_counts(year=year, month=month_number)
        return StatusCountOut(
            period_year=year,
            period_month=month_number,
            total=sum(counts.values()),
            counts={status: counts.get(status, 0) for status in SubmissionStatus},
        )

    # ------------------------------------------------------------------
    # Vendor operations
    # ------------------------------------------------------------------

    async def upload_document(
        self, ref: str, actor: Actor, body: DocumentUpload
    ) -> Outcome[SubmissionDocument]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission,
            lambda: document_workflow.upload(
                submission,
                actor,
                body.document_type,
                _artifact(body),
                mandatory=body.is_mandatory,
                display_name=body.display_name,
            ),
        )
        return Outcome.of(result.document, result)

    async def resubmit_document(
        self, ref: str | None, actor: Actor, body: ResubmitIn
    ) -> Outcome[SubmissionDocument]:
        submission, document = await self._resubmissions.locate(
            ref, document_id=body.document_id, document_type=body.document_type
        )
        result = await self._apply(
            submission,
            lambda: document_workflow.resubmit(submission, document, _artifact(body), actor),
        )
        return Outcome.of(result.document, result)

    async def delete_document(
        self, ref: str, document_id: str, actor: Actor
    ) -> Outcome[SubmissionDocument]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission, lambda: document_workflow.delete(submission, document_id, actor)
        )
        return Outcome.of(result.document, result)

    async def submit_for_review(self, ref: str, actor: Actor) -> Outcome[Submission]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission, lambda: document_workflow.submit_for_review(submission, actor)
        )
        return Outcome.of(submission, result)

    async def delete_submission(self, ref: str, actor: Actor) -> None:
        """Soft-delete a draft. Anything that ever held a document is kept."""
        submission = await self._adapter.get_submission(ref)
        ensure_owner(submission, actor, allow_admin=False)
        if submission.documents or submission.has_approved_document:
            raise InvalidStateError(
                f"Submission {submission.submission_code} has documents and cannot be deleted"
            )
        async with self._writing(submission):
            await self._repo.soft_delete(submission)
        logger.info("Deleted draft submission %s", submission.submission_code)

    # ------------------------------------------------------------------
    # Reviewer operations
    # ------------------------------------------------------------------

    async def start_review(
        self, ref: str, document_id: str, actor: Actor
    ) -> Outcome[SubmissionDocument]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission, lambda: document_workflow.start_review(submission, document_id, actor)
        )
        return Outcome.of(result.document, result)

    async def decide_document(
        self,
        ref: str,
        document_id: str,
        decision: ReviewDecision | str,
        remarks: str | None,
        actor: Actor,
    ) -> Outcome[SubmissionDocument]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission,
            lambda: document_workflow.decide(submission, document_id, decision, remarks, actor),
        )
        return Outcome.of(result.document, result)

    async def decide_all(
        self,
        ref: str,
        decision: ReviewDecision | str,
        remarks: str | None,
        actor: Actor,
    ) -> Outcome[Submission]:
        """Apply one decision to every document still awaiting review."""
        submission = await self._adapter.get_submission(ref)
        pending = [d.id for d in submission.documents if d.status in REVIEWABLE_STATUSES]
        if not pending:
            raise InvalidStateError(
                f"Submission {submission.submission_code} has no documents awaiting review"
            )

        def _decide_each() -> TransitionResult:
            combined = TransitionResult(document=None)
            for document_id in pending:
                step = document_workflow.decide(submission, document_id, decision, remarks, actor)
                combined.events.extend(step.events)
            return combined

        result = await self._apply(submission, _decide_each)
        return Outcome.of(submission, result)

    async def finalize(
        self,
        ref: str,
        decision: FinalDecision | str,
        remarks: str | None,
        actor: Actor,
    ) -> Outcome[Submission]:
        submission = await self._adapter.get_submission(ref)
        result = await self._apply(
            submission,
            lambda: document_workflow.finalize(submission, decision, remarks, actor),
        )
        return Outcome.of(submission, result)


async def bulk_decide(
    session_factory: async_sessionmaker[AsyncSession],
    submission_ids: list[str],
    decision: ReviewDecision | str,
    remarks: str | None,
    actor: Actor,
) -> tuple[list[BulkDecisionResult], list[NotificationEvent]]:
    """Decide every reviewable document of several submissions.

    Each submission runs in its own session and commits on its own, so one
    failure never undoes the others.
    """
    results: list[BulkDecisionResult] = []
    events: list[NotificationEvent] = []
    for submission_id in submission_ids:
        async with session_factory() as session:
            try:
                outcome = await SubmissionService(session).decide_all(
                    submission_id, decision, remarks, actor
                )
                await session.commit()
            except AppException as exc:
                await session.rollback()
                results.append(BulkDecisionResult(id=submission_id, success=False, message=exc.message))
                continue
        events.extend(outcome.events)
        results.append(
            BulkDecisionResult(
                id=submission_id,
                success=True,
                message=f"Submission {outcome.value.status.value.replace('_', ' ')}",
            )
        )
    logger.info(
        "Bulk %s by %s: %d/%d submissions succeeded",
        ReviewDecision(decision).value, actor.id, sum(r.success for r in results), len(results),
    )
    return results, events
