"""Submission workflow router.

Pattern:
  1. Resolve the actor from gateway headers, narrowed by role group
  2. Instantiate the service with the request session
  3. Call one service operation
  4. Commit, then hand events / released artifacts to background tasks
  5. Wrap the result in the response envelope
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.actor import (
    FINALIZER_ROLES,
    REVIEWER_ROLES,
    SUBMITTER_ROLES,
    VENDOR_ROLES,
    Actor,
    get_actor,
    require_roles,
)
from portal.core.pagination import PaginationParams
from portal.core.response import DataResponse, ListResponse, paginated
from portal.db.base import get_db
from portal.domain.statuses import SubmissionStatus
from portal.routers.v1.side_effects import commit_and_schedule
from portal.schemas.submission import (
    BulkDecisionIn,
    BulkDecisionResult,
    DocumentDecisionIn,
    DocumentOut,
    DocumentUpload,
    FinalDecisionIn,
    ResubmitIn,
    StatusCountOut,
    SubmissionCreate,
    SubmissionOut,
)
from portal.services.submission import SubmissionService, bulk_decide

router = APIRouter(prefix="/submissions", tags=["Submissions"])


# ------------------------------------------------------------------
# Collection
# ------------------------------------------------------------------

@router.get("", response_model=ListResponse[SubmissionOut])
async def list_submissions(
    vendor_id: Optional[str] = Query(default=None, alias="vendorId"),
    consultant_email: Optional[str] = Query(default=None, alias="consultantEmail"),
    year: Optional[int] = Query(default=None),
    month: Optional[str] = Query(default=None, description="1-12, 'Mar' or 'March'"),
    filter_status: Optional[SubmissionStatus] = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_db),
):
    """List submissions (paginated). Vendors only ever see their own."""
    items, total = await SubmissionService(session).list_submissions(
        actor,
        pagination,
        vendor_id=vendor_id,
        consultant_email=consultant_email,
        year=year,
        month=month,
        status=filter_status,
    )
    return paginated(
        [SubmissionOut.from_submission(s) for s in items],
        total,
        pagination,
    )


@router.post("", response_model=DataResponse[SubmissionOut], status_code=status.HTTP_201_CREATED)
async def create_submission(
    body: SubmissionCreate,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(SUBMITTER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    outcome = await SubmissionService(session).create_submission(actor, body)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": SubmissionOut.from_submission(outcome.value)}


@router.get("/status-counts", response_model=DataResponse[StatusCountOut])
async def status_counts(
    year: Optional[int] = Query(default=None),
    month: Optional[str] = Query(default=None),
    actor: Actor = Depends(require_roles(REVIEWER_ROLES | FINALIZER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Submissions per status for a period."""
    counts = await SubmissionService(session).period_status_counts(year=year, month=month)
    return {"data": counts}


@router.post("/bulk-decision", response_model=DataResponse[list[BulkDecisionResult]])
async def bulk_decision(
    body: BulkDecisionIn,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(REVIEWER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Apply one decision to every reviewable document of each listed submission.

    Each submission commits on its own; the response reports per-submission results.
    """
    results, events = await bulk_decide(
        request.app.state.session_factory, body.submission_ids, body.decision, body.remarks, actor
    )
    await commit_and_schedule(request, background, session, events=events)
    return {"data": results}


# ------------------------------------------------------------------
# Single submission
# ------------------------------------------------------------------

@router.get("/{ref}", response_model=DataResponse[SubmissionOut])
async def get_submission(
    ref: str,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_db),
):
    """Submission by id, code, or the id of any document it contains."""
    submission = await SubmissionService(session).get_submission_status(ref, viewer=actor)
    return {"data": SubmissionOut.from_submission(submission)}


@router.delete("/{ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    ref: str,
    actor: Actor = Depends(require_roles(VENDOR_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    await SubmissionService(session).delete_submission(ref, actor)


@router.post("/{ref}/submit", response_model=DataResponse[SubmissionOut])
async def submit_for_review(
    ref: str,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(SUBMITTER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Hand the submission to the consultant. 422 lists every missing mandatory type."""
    outcome = await SubmissionService(session).submit_for_review(ref, actor)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": SubmissionOut.from_submission(outcome.value)}


@router.post("/{ref}/final-decision", response_model=DataResponse[SubmissionOut])
async def final_decision(
    ref: str,
    body: FinalDecisionIn,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(FINALIZER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    outcome = await SubmissionService(session).finalize(ref, body.decision, body.remarks, actor)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": SubmissionOut.from_submission(outcome.value)}


# ------------------------------------------------------------------
# Documents inside a submission
# ------------------------------------------------------------------

@router.post(
    "/{ref}/documents",
    response_model=DataResponse[DocumentOut],
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    ref: str,
    body: DocumentUpload,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(VENDOR_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Add a document, or replace the artifact of the existing one of that type."""
    outcome = await SubmissionService(session).upload_document(ref, actor, body)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": DocumentOut.model_validate(outcome.value)}


@router.delete("/{ref}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    ref: str,
    document_id: str,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(VENDOR_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    outcome = await SubmissionService(session).delete_document(ref, document_id, actor)
    await commit_and_schedule(request, background, session, outcome)


@router.post("/{ref}/documents/{document_id}/start-review", response_model=DataResponse[DocumentOut])
async def start_review(
    ref: str,
    document_id: str,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(REVIEWER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    outcome = await SubmissionService(session).start_review(ref, document_id, actor)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": DocumentOut.model_validate(outcome.value)}


@router.post("/{ref}/documents/{document_id}/decision", response_model=DataResponse[DocumentOut])
async def decide_document(
    ref: str,
    document_id: str,
    body: DocumentDecisionIn,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(REVIEWER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    outcome = await SubmissionService(session).decide_document(
        ref, document_id, body.decision, body.remarks, actor
    )
    await commit_and_schedule(request, background, session, outcome)
    return {"data": DocumentOut.model_validate(outcome.value)}


@router.post("/{ref}/resubmissions", response_model=DataResponse[DocumentOut])
async def resubmit_document(
    ref: str,
    body: ResubmitIn,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(SUBMITTER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Answer a rejection with a corrected artifact (target by documentId or documentType)."""
    outcome = await SubmissionService(session).resubmit_document(ref, actor, body)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": DocumentOut.model_validate(outcome.value)}
