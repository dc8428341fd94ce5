"""Submission aggregate rules.

Everything here works on in-memory ORM objects and never touches a session,
so the rules can be exercised without a database:
  - construction of new submissions / documents with every field populated
  - ``refresh_status``: the only writer of ``Submission.status``
  - completeness checking against the document type registry
  - ownership and "is the submission still open" guards
"""


import logging
import secrets
import string
import uuid
from datetime import datetime

from pydantic import BaseModel

from portal.core.actor import Actor
from portal.core.config import settings
from portal.core.exceptions import (
    AuthorizationError,
    IncompleteSubmissionError,
    NotFoundError,
    ValidationError,
)
from portal.domain.mixins import utcnow
from portal.domain.statuses import (
    DocumentStatus,
    FinalDecision,
    SubmissionStatus,
)
from portal.domain.submission import RejectionRecord, Submission, SubmissionDocument
from portal.services.document_types import (
    DocumentType,
    mandatory_types_for,
    missing_mandatory_types,
    month_label,
    parse_month,
)
from portal.services.status_aggregator import aggregate

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

class Period(BaseModel):
    year: int
    month: int

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, year: int | str, month: int | str) -> "Period":
        try:
            year_number = int(year)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid year: {year!r}") from None
        if not settings.min_period_year <= year_number <= settings.max_period_year:
            raise ValidationError(
                f"Year must be between {settings.min_period_year} and {settings.max_period_year}"
            )
        return cls(year=year_number, month=parse_month(month))

class ConsultantSnapshot(BaseModel):
    name: str
    email: str

    model_config = {"frozen": True}

class ArtifactRef(BaseModel):
    """Opaque pointer to stored bytes, produced by the upload collaborator."""

    storage_ref: str
    file_name: str | None = None
    file_size_bytes: int | None = None
    file_type: str | None = None

    model_config = {"frozen": True}

class CompletenessReport(BaseModel):
    required: list[DocumentType]
    present: list[DocumentType]
    missing: list[DocumentType]

    @property
    def is_complete(self) -> bool:
        return not self.missing

# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def generate_submission_code(period: Period) -> str:
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"SUB-{period.year}-{month_label(period.month)}-{suffix}"

def new_submission(
    vendor_id: str,
    period: Period,
    consultant: ConsultantSnapshot,
    *,
    invoice_no: str | None = None,
    work_location: str | None = None,
    now: datetime | None = None,
) -> Submission:
    if not consultant.name.strip() or not consultant.email.strip():
        raise ValidationError("Consultant name and email are required")
    timestamp = now or utcnow()
    return Submission(
        id=str(uuid.uuid4()),
        submission_code=generate_submission_code(period),
        vendor_id=vendor_id,
        consultant_name=consultant.name.strip(),
        consultant_email=consultant.email.strip(),
        period_year=period.year,
        period_month=period.month,
        invoice_no=invoice_no,
        work_location=work_location or settings.default_work_location,
        status=SubmissionStatus.DRAFT,
        has_approved_document=False,
        created_at=timestamp,
        updated_at=timestamp,
        documents=[],
        rejections=[],
    )

def new_document(
    submission: Submission,
    document_type: DocumentType,
    artifact: ArtifactRef,
    *,
    display_name: str,
    is_mandatory: bool,
    now: datetime | None = None,
) -> SubmissionDocument:
    position = max((d.position for d in submission.documents), default=-1) + 1
    document = SubmissionDocument(
        id=str(uuid.uuid4()),
        submission_id=submission.id,
        position=position,
        document_type=document_type.value,
        display_name=display_name,
        storage_ref=artifact.storage_ref,
        file_name=artifact.file_name,
        file_size_bytes=artifact.file_size_bytes,
        file_type=artifact.file_type,
        is_mandatory=is_mandatory,
        status=DocumentStatus.UPLOADED,
        uploaded_at=now or utcnow(),
        version=1,
        remark_history=[],
    )
    submission.documents.append(document)
    return document

# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_document(submission: Submission, document_id: str) -> SubmissionDocument:
    for document in submission.documents:
        if document.id == document_id:
            return document
    raise NotFoundError("Document", document_id)

def document_for_type(
    submission: Submission, document_type: DocumentType | str
) -> SubmissionDocument | None:
    code = DocumentType(document_type).value
    for document in submission.documents:
        if document.document_type == code:
            return document
    return None

def open_rejections(submission: Submission, document_type: str) -> list[RejectionRecord]:
    return [
        r for r in submission.rejections
        if r.document_type == document_type and not r.is_resubmitted
    ]

def latest_open_rejection(submission: Submission, document_type: str) -> RejectionRecord | None:
    records = open_rejections(submission, document_type)
    return max(records, key=lambda r: r.rejected_at) if records else None

# ---------------------------------------------------------------------------
# Derived status
# ---------------------------------------------------------------------------

def refresh_status(submission: Submission, now: datetime | None = None) -> SubmissionStatus:
    """Recompute the cached aggregate status and touch the modification time.

    Called after every mutation of a contained document. Touching
    ``updated_at`` guarantees the submission row itself is UPDATEd, which is
    what makes the optimistic version check cover child-only changes.
    """
    status = aggregate(submission.documents)
    if status != submission.status:
        logger.info(
            "Submission %s status %s -> %s",
            submission.submission_code, SubmissionStatus(submission.status).value, status.value,
        )
    submission.status = status
    if any(d.status is DocumentStatus.APPROVED for d in submission.documents):
        submission.has_approved_document = True
    submission.updated_at = now or utcnow()
    return status

# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------

def completeness(submission: Submission) -> CompletenessReport:
    required = mandatory_types_for(submission.period_month)
    present_codes = {d.document_type for d in submission.documents}
    missing = missing_mandatory_types(submission.period_month, present_codes)
    return CompletenessReport(
        required=[t for t in DocumentType if t in required],
        present=[t for t in DocumentType if t.value in present_codes],
        missing=missing,
    )

def can_submit_for_review(submission: Submission) -> bool:
    return completeness(submission).is_complete

def ensure_complete(submission: Submission) -> None:
    report = completeness(submission)
    if report.missing:
        raise IncompleteSubmissionError([t.value for t in report.missing])

# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def ensure_owner(submission: Submission, actor: Actor, *, allow_admin: bool = True) -> None:
    """Only the owning vendor (or an admin acting for them) may proceed."""
    if actor.id == submission.vendor_id:
        return
    if allow_admin and actor.is_admin:
        return
    raise AuthorizationError(
        f"Actor '{actor.id}' does not own submission {submission.submission_code}"
    )

def is_locked(submission: Submission) -> bool:
    """Terminal: final-approved, or fully approved without a changes-required overlay."""
    if submission.final_decision is FinalDecision.FINAL_APPROVED:
        return True
    return (
        submission.status is SubmissionStatus.FULLY_APPROVED
        and submission.final_decision is not FinalDecision.CHANGES_REQUIRED
    )

def ensure_open(submission: Submission) -> None:
    if is_locked(submission):
        raise ValidationError(
            f"Submission {submission.submission_code} is {submission.status.value}"
            f"{' (final approved)' if submission.is_final_approved else ''} and accepts no changes"
        )

def document_counts(submission: Submission) -> dict[str, int]:
    counts = {"total": len(submission.documents), "approved": 0, "rejected": 0, "pending": 0}
    for document in submission.documents:
        if document.status is DocumentStatus.APPROVED:
            counts["approved"] += 1
        elif document.status is DocumentStatus.REJECTED:
            counts["rejected"] += 1
        else:
            counts["pending"] += 1
    return counts
