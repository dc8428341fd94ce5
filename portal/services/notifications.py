"""Notification events produced by workflow transitions, and their dispatch.

Transitions never talk to a transport. They return ``NotificationEvent`` values
and the caller hands them to a ``NotificationDispatcher`` once the state change
is persisted. Dispatch is best-effort: a failed send is logged and reported
back, never raised, so it cannot undo a committed transition.
"""


import logging
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from portal.core.config import settings
from portal.domain.statuses import DocumentStatus, FinalDecision, ReviewDecision
from portal.domain.submission import Submission, SubmissionDocument
from portal.services.document_types import label_for, month_label

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

class NotificationKind(str, Enum):
    DOCUMENT_SUBMISSION = "document_submission"
    DOCUMENT_RESUBMITTED = "document_resubmitted"
    DOCUMENT_REVIEW = "document_review"
    DOCUMENT_APPROVED = "document_approved"
    DOCUMENT_REJECTED = "document_rejected"
    WORKFLOW_UPDATE = "workflow_update"

class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

class NotificationEvent(BaseModel):
    recipient_id: str
    kind: NotificationKind
    subject_type: str  # "submission" | "document"
    subject_id: str
    title: str
    summary: str
    priority: NotificationPriority = NotificationPriority.MEDIUM

    model_config = {"frozen": True}

# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------

def _period(submission: Submission) -> str:
    return f"{month_label(submission.period_month)} {submission.period_year}"

def _with_remarks(text: str, remarks: str | None) -> str:
    return f"{text} Remarks: {remarks}" if remarks else text

def upload_events(
    submission: Submission, document: SubmissionDocument, *, replaced: bool
) -> list[NotificationEvent]:
    verb = "re-uploaded" if replaced else "uploaded"
    return [
        NotificationEvent(
            recipient_id=submission.consultant_email,
            kind=NotificationKind.DOCUMENT_SUBMISSION,
            subject_type="document",
            subject_id=document.id,
            title=f"Document {verb.capitalize()}",
            summary=(
                f"Vendor {submission.vendor_id} has {verb} {label_for(document.document_type)} "
                f"for {_period(submission)} ({submission.submission_code}). Please review the document."
            ),
        )
    ]

def review_started_events(
    submission: Submission, document: SubmissionDocument
) -> list[NotificationEvent]:
    return [
        NotificationEvent(
            recipient_id=submission.vendor_id,
            kind=NotificationKind.DOCUMENT_REVIEW,
            subject_type="document",
            subject_id=document.id,
            title="Document Under Review",
            summary=(
                f"Your {label_for(document.document_type)} for {_period(submission)} "
                "is now under review."
            ),
            priority=NotificationPriority.LOW,
        )
    ]

def decision_events(
    submission: Submission,
    document: SubmissionDocument,
    decision: ReviewDecision,
    remarks: str | None,
    reviewer_id: str,
) -> list[NotificationEvent]:
    approved = decision is ReviewDecision.APPROVED
    return [
        NotificationEvent(
            recipient_id=submission.vendor_id,
            kind=NotificationKind.DOCUMENT_APPROVED if approved else NotificationKind.DOCUMENT_REJECTED,
            subject_type="document",
            subject_id=document.id,
            title=f"Document {'Approved' if approved else 'Rejected'}",
            summary=_with_remarks(
                f"Your {label_for(document.document_type)} for {_period(submission)} "
                f"has been {decision.value} by {reviewer_id}.",
                remarks,
            ),
            priority=NotificationPriority.MEDIUM if approved else NotificationPriority.HIGH,
        )
    ]

def completion_events(submission: Submission, reviewer_id: str) -> list[NotificationEvent]:
    approved = sum(1 for d in submission.documents if d.status is DocumentStatus.APPROVED)
    rejected = sum(1 for d in submission.documents if d.status is DocumentStatus.REJECTED)
    return [
        NotificationEvent(
            recipient_id=settings.admin_notification_recipient,
            kind=NotificationKind.WORKFLOW_UPDATE,
            subject_type="submission",
            subject_id=submission.id,
            title="Submission Review Completed",
            summary=(
                f"{reviewer_id} has completed review of {submission.submission_code} "
                f"({_period(submission)}). {approved} documents approved, {rejected} documents rejected."
            ),
            priority=NotificationPriority.LOW,
        )
    ]

def resubmission_events(
    submission: Submission, document: SubmissionDocument
) -> list[NotificationEvent]:
    return [
        NotificationEvent(
            recipient_id=submission.consultant_email,
            kind=NotificationKind.DOCUMENT_RESUBMITTED,
            subject_type="document",
            subject_id=document.id,
            title="Document Resubmitted",
            summary=(
                f"Vendor {submission.vendor_id} has resubmitted {label_for(document.document_type)} "
                f"(version {document.version}) for {_period(submission)}. Please review the document."
            ),
        )
    ]

def submitted_for_review_events(submission: Submission) -> list[NotificationEvent]:
    return [
        NotificationEvent(
            recipient_id=submission.consultant_email,
            kind=NotificationKind.DOCUMENT_SUBMISSION,
            subject_type="submission",
            subject_id=submission.id,
            title="Submission Ready For Review",
            summary=(
                f"Vendor {submission.vendor_id} submitted {len(submission.documents)} documents "
                f"for {_period(submission)} ({submission.submission_code})."
            ),
        )
    ]

def final_decision_events(
    submission: Submission, decision: FinalDecision, remarks: str | None, approver_id: str
) -> list[NotificationEvent]:
    approved = decision is FinalDecision.FINAL_APPROVED
    outcome = "approved" if approved else "returned for changes"
    return [
        NotificationEvent(
            recipient_id=submission.vendor_id,
            kind=NotificationKind.DOCUMENT_APPROVED if approved else NotificationKind.DOCUMENT_REJECTED,
            subject_type="submission",
            subject_id=submission.id,
            title=f"Final Submission {'Approved' if approved else 'Changes Required'}",
            summary=_with_remarks(
                f"Your submission for {_period(submission)} has been {outcome} by {approver_id}.",
                remarks,
            ),
            priority=NotificationPriority.MEDIUM if approved else NotificationPriority.HIGH,
        ),
        NotificationEvent(
            recipient_id=settings.admin_notification_recipient,
            kind=NotificationKind.WORKFLOW_UPDATE,
            subject_type="submission",
            subject_id=submission.id,
            title="Document Verification Report",
            summary=_with_remarks(
                f"Submission {submission.submission_code} has been {outcome} by {approver_id}.",
                remarks,
            ),
            priority=NotificationPriority.LOW,
        ),
    ]

# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class NotificationDispatcher(Protocol):
    async def send(self, event: NotificationEvent) -> None: ...

class LoggingNotificationDispatcher:
    """Default in-process dispatcher: records events in the application log."""

    async def send(self, event: NotificationEvent) -> None:
        logger.info(
            "notification %s -> %s [%s] %s",
            event.kind.value, event.recipient_id, event.priority.value, event.title,
        )

async def dispatch_events(
    dispatcher: NotificationDispatcher, events: Iterable[NotificationEvent]
) -> list[NotificationEvent]:
    """Send every event independently. Returns the events that failed."""
    failed: list[NotificationEvent] = []
    if not settings.notifications_enabled:
        return failed
    for event in events:
        try:
            await dispatcher.send(event)
        except Exception as exc:
            failed.append(event)
            logger.warning(
                "Notification %s to %s failed: %s", event.kind.value, event.recipient_id, exc
            )
    return failed
