"""Document state machine.

    uploaded ──▶ under_review ──▶ approved (terminal)
        │              │
        └──────────────┴──────▶ rejected ──▶ resubmitted ──▶ under_review ...

Every function here mutates in-memory ORM objects only, re-runs the status
aggregator on the owning submission and returns a ``TransitionResult`` carrying
the notification events the caller should dispatch once the change is
persisted. Guard violations always raise; nothing silently no-ops except
``start_review`` on a document that is already under review.
"""


import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from portal.core.actor import Actor
from portal.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    PreconditionError,
    ValidationError,
)
from portal.domain.mixins import utcnow
from portal.domain.statuses import (
    DocumentStatus,
    FinalDecision,
    ReviewDecision,
    SubmissionStatus,
)
from portal.domain.submission import RejectionRecord, Submission, SubmissionDocument
from portal.services import notifications
from portal.services.document_types import (
    is_mandatory as default_mandatory_flag,
    label_for,
    parse_document_type,
)
from portal.services.notifications import NotificationEvent
from portal.services.submission_aggregate import (
    ArtifactRef,
    document_for_type,
    ensure_complete,
    ensure_open,
    ensure_owner,
    find_document,
    is_locked,
    latest_open_rejection,
    new_document,
    refresh_status,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADED: frozenset(
        {DocumentStatus.UNDER_REVIEW, DocumentStatus.APPROVED, DocumentStatus.REJECTED}
    ),
    DocumentStatus.UNDER_REVIEW: frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED}),
    DocumentStatus.RESUBMITTED: frozenset(
        {DocumentStatus.UNDER_REVIEW, DocumentStatus.APPROVED, DocumentStatus.REJECTED}
    ),
    DocumentStatus.REJECTED: frozenset({DocumentStatus.RESUBMITTED}),
    DocumentStatus.APPROVED: frozenset(),
}

# Documents a reviewer can still act on
REVIEWABLE_STATUSES = frozenset(
    {DocumentStatus.UPLOADED, DocumentStatus.UNDER_REVIEW, DocumentStatus.RESUBMITTED}
)


@dataclass
class TransitionResult:
    document: SubmissionDocument | None
    events: list[NotificationEvent] = field(default_factory=list)
    # Storage refs no longer referenced once the change commits
    released_artifacts: list[str] = field(default_factory=list)


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(DocumentStatus(current), frozenset())


def ensure_transition(document: SubmissionDocument, target: DocumentStatus) -> None:
    if not can_transition(document.status, target):
        raise InvalidStateError(
            f"{label_for(document.document_type)} cannot move from "
            f"'{DocumentStatus(document.status).value}' to '{target.value}'"
        )


def _append_history(
    document: SubmissionDocument,
    *,
    actor_id: str,
    at: datetime,
    remarks: str | None = None,
    **extra,
) -> None:
    entry = {
        "version": document.version,
        "status": DocumentStatus(document.status).value,
        "remarks": remarks,
        "actorId": actor_id,
        "at": at.isoformat(),
        **extra,
    }
    # Reassign so the JSON column registers the change
    document.remark_history = [*(document.remark_history or []), entry]


def _swap_artifact(document: SubmissionDocument, artifact: ArtifactRef) -> str | None:
    previous = document.storage_ref
    document.storage_ref = artifact.storage_ref
    document.file_name = artifact.file_name
    document.file_size_bytes = artifact.file_size_bytes
    document.file_type = artifact.file_type
    return previous if previous and previous != artifact.storage_ref else None


def _log(submission: Submission, document: SubmissionDocument, action: str) -> None:
    logger.info(
        "%s %s/%s (%s) -> %s",
        action,
        submission.submission_code,
        document.id,
        document.document_type,
        DocumentStatus(document.status).value,
    )


# ---------------------------------------------------------------------------
# Vendor side
# ---------------------------------------------------------------------------

def upload(
    submission: Submission,
    actor: Actor,
    document_type: str,
    artifact: ArtifactRef,
    *,
    mandatory: bool | None = None,
    display_name: str | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Add a document, or replace the artifact of the existing one of that type.

    A submission holds at most one document per type. Replacing is allowed
    while the document is still ``uploaded``; an ``approved`` document may be
    replaced only under a ``changes_required`` overlay, which starts a new
    review cycle for it.
    """
    ensure_owner(submission, actor, allow_admin=False)
    code = parse_document_type(document_type)
    ensure_open(submission)
    timestamp = now or utcnow()

    existing = document_for_type(submission, code)
    if existing is None:
        document = new_document(
            submission,
            code,
            artifact,
            display_name=display_name or label_for(code),
            is_mandatory=(
                mandatory if mandatory is not None
                else default_mandatory_flag(code, submission.period_month)
            ),
            now=timestamp,
        )
        refresh_status(submission, timestamp)
        _log(submission, document, "upload")
        return TransitionResult(
            document=document,
            events=notifications.upload_events(submission, document, replaced=False),
        )

    status = DocumentStatus(existing.status)
    if status is DocumentStatus.REJECTED:
        raise PreconditionError(
            f"{label_for(code)} was rejected; resubmit it to answer the rejection"
        )
    reopening = (
        status is DocumentStatus.APPROVED
        and submission.final_decision is FinalDecision.CHANGES_REQUIRED
    )
    if status is not DocumentStatus.UPLOADED and not reopening:
        raise InvalidStateError(
            f"{label_for(code)} is '{status.value}' and cannot be replaced"
        )

    released = _swap_artifact(existing, artifact)
    existing.version += 1
    existing.uploaded_at = timestamp
    if display_name:
        existing.display_name = display_name
    if mandatory is not None:
        existing.is_mandatory = mandatory
    if reopening:
        existing.status = DocumentStatus.UPLOADED
        existing.reviewed_by = None
        existing.reviewed_at = None
    _append_history(existing, actor_id=actor.id, at=timestamp, remarks="Artifact replaced")

    refresh_status(submission, timestamp)
    _log(submission, existing, "replace")
    return TransitionResult(
        document=existing,
        events=notifications.upload_events(submission, existing, replaced=True),
        released_artifacts=[released] if released else [],
    )


def resubmit(
    submission: Submission,
    document: SubmissionDocument,
    artifact: ArtifactRef,
    actor: Actor,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Answer the most recent open rejection of *document* with a new artifact."""
    ensure_owner(submission, actor)
    status = DocumentStatus(document.status)
    answered = any(
        r.is_resubmitted for r in submission.rejections if r.document_id == document.id
    )
    # Resubmitted and not rejected again since, whether or not review has started
    if status is DocumentStatus.RESUBMITTED or (
        status is DocumentStatus.UNDER_REVIEW and answered
    ):
        raise PreconditionError(
            f"{label_for(document.document_type)} has already been resubmitted and awaits review"
        )
    ensure_transition(document, DocumentStatus.RESUBMITTED)

    rejection = latest_open_rejection(submission, document.document_type)
    if rejection is None:
        raise PreconditionError(
            f"No open rejection for {label_for(document.document_type)}"
        )

    timestamp = now or utcnow()
    rejection.is_resubmitted = True
    rejection.resubmitted_at = timestamp

    released = _swap_artifact(document, artifact)
    document.version += 1
    document.status = DocumentStatus.RESUBMITTED
    document.uploaded_at = timestamp
    # Remarks stay visible; only the decision stamp is cleared
    document.reviewed_by = None
    document.reviewed_at = None
    _append_history(
        document,
        actor_id=actor.id,
        at=timestamp,
        remarks=rejection.reason,
        rejectionId=rejection.id,
    )

    refresh_status(submission, timestamp)
    _log(submission, document, "resubmit")
    return TransitionResult(
        document=document,
        events=notifications.resubmission_events(submission, document),
        released_artifacts=[released] if released else [],
    )


def delete(
    submission: Submission, document_id: str, actor: Actor, *, now: datetime | None = None
) -> TransitionResult:
    ensure_owner(submission, actor, allow_admin=False)
    document = find_document(submission, document_id)
    if is_locked(submission):
        raise InvalidStateError(
            f"Submission {submission.submission_code} is closed; documents cannot be removed"
        )
    if document.status is DocumentStatus.APPROVED:
        raise InvalidStateError(
            f"{label_for(document.document_type)} is approved and cannot be removed"
        )

    submission.documents.remove(document)
    # Rejections answered by nobody would block the type forever
    for record in [r for r in submission.rejections if r.document_id == document.id]:
        if not record.is_resubmitted:
            submission.rejections.remove(record)

    refresh_status(submission, now)
    logger.info("delete %s/%s (%s)", submission.submission_code, document.id, document.document_type)
    return TransitionResult(document=document, released_artifacts=[document.storage_ref])


def submit_for_review(
    submission: Submission, actor: Actor, *, now: datetime | None = None
) -> TransitionResult:
    """Hand a complete submission to the consultant.

    Raises ``IncompleteSubmissionError`` naming every missing mandatory type.
    Submitting also lifts a ``changes_required`` overlay.
    """
    ensure_owner(submission, actor)
    if submission.is_final_approved:
        raise InvalidStateError(
            f"Submission {submission.submission_code} has already been final approved"
        )
    ensure_complete(submission)

    timestamp = now or utcnow()
    if submission.final_decision is FinalDecision.CHANGES_REQUIRED:
        submission.final_decision = None
        submission.final_decided_by = None
        submission.final_decided_at = None
    submission.submitted_at = timestamp
    refresh_status(submission, timestamp)
    logger.info(
        "submit %s for review (%d documents)",
        submission.submission_code, len(submission.documents),
    )
    return TransitionResult(
        document=None, events=notifications.submitted_for_review_events(submission)
    )


# ---------------------------------------------------------------------------
# Reviewer side
# ---------------------------------------------------------------------------

def ensure_reviewer_can_act(submission: Submission, actor: Actor) -> None:
    """Vendors never decide, whatever role the gateway forwarded."""
    if actor.id == submission.vendor_id:
        raise AuthorizationError("A vendor cannot review their own submission")


def start_review(
    submission: Submission, document_id: str, actor: Actor, *, now: datetime | None = None
) -> TransitionResult:
    ensure_reviewer_can_act(submission, actor)
    document = find_document(submission, document_id)
    if document.status is DocumentStatus.UNDER_REVIEW:
        return TransitionResult(document=document)
    ensure_transition(document, DocumentStatus.UNDER_REVIEW)

    document.status = DocumentStatus.UNDER_REVIEW
    refresh_status(submission, now)
    _log(submission, document, f"review by {actor.id}")
    return TransitionResult(
        document=document, events=notifications.review_started_events(submission, document)
    )


def parse_decision(value: str | ReviewDecision) -> ReviewDecision:
    try:
        return ReviewDecision(value)
    except ValueError:
        raise ValidationError(
            f"Decision must be one of {[d.value for d in ReviewDecision]}, got {value!r}"
        ) from None


def decide(
    submission: Submission,
    document_id: str,
    decision: str | ReviewDecision,
    remarks: str | None,
    actor: Actor,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Approve or reject one document.

    Rejecting opens a ``RejectionRecord`` that a later resubmission closes.
    When the decision leaves nothing awaiting review the admins are told the
    submission review is complete.
    """
    verdict = parse_decision(decision)
    ensure_reviewer_can_act(submission, actor)
    document = find_document(submission, document_id)
    target = DocumentStatus(verdict.value)
    ensure_transition(document, target)

    timestamp = now or utcnow()
    document.status = target
    document.reviewer_remarks = remarks
    document.reviewed_by = actor.id
    document.reviewed_at = timestamp
    _append_history(document, actor_id=actor.id, at=timestamp, remarks=remarks)

    if verdict is ReviewDecision.REJECTED:
        submission.rejections.append(
            RejectionRecord(
                id=str(uuid.uuid4()),
                submission_id=submission.id,
                document_id=document.id,
                document_type=document.document_type,
                reason=remarks,
                rejected_at=timestamp,
                rejected_by=actor.id,
                is_resubmitted=False,
                resubmitted_at=None,
            )
        )

    refresh_status(submission, timestamp)
    _log(submission, document, f"decision by {actor.id}")

    events = notifications.decision_events(submission, document, verdict, remarks, actor.id)
    if not any(d.status in REVIEWABLE_STATUSES for d in submission.documents):
        events.extend(notifications.completion_events(submission, actor.id))
    return TransitionResult(document=document, events=events)


# ---------------------------------------------------------------------------
# Final approval overlay
# ---------------------------------------------------------------------------

def parse_final_decision(value: str | FinalDecision) -> FinalDecision:
    try:
        return FinalDecision(value)
    except ValueError:
        raise ValidationError(
            f"Final decision must be one of {[d.value for d in FinalDecision]}, got {value!r}"
        ) from None


def finalize(
    submission: Submission,
    decision: str | FinalDecision,
    remarks: str | None,
    actor: Actor,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    verdict = parse_final_decision(decision)
    if verdict is FinalDecision.CHANGES_REQUIRED and not (remarks and remarks.strip()):
        raise ValidationError("Remarks are required when requesting changes")
    if submission.is_final_approved:
        raise InvalidStateError(
            f"Submission {submission.submission_code} has already been final approved"
        )
    if submission.status is not SubmissionStatus.FULLY_APPROVED:
        raise InvalidStateError(
            f"Submission {submission.submission_code} is '{submission.status.value}'; "
            "every document must be approved first"
        )

    timestamp = now or utcnow()
    submission.final_decision = verdict
    submission.final_decided_by = actor.id
    submission.final_decided_at = timestamp
    submission.final_remarks = remarks
    submission.updated_at = timestamp
    logger.info(
        "finalize %s -> %s by %s", submission.submission_code, verdict.value, actor.id
    )
    return TransitionResult(
        document=None,
        events=notifications.final_decision_events(submission, verdict, remarks, actor.id),
    )
