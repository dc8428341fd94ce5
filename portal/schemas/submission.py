"""Submission API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from portal.domain.statuses import (
    DocumentStatus,
    FinalDecision,
    ReviewDecision,
    SubmissionStatus,
)
from portal.domain.submission import Submission
from portal.schemas.common import ArtifactIn, CamelModel
from portal.services.submission_aggregate import completeness, document_counts

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class SubmissionCreate(CamelModel):
    # Admins create on a vendor's behalf; vendors may omit it
    vendor_id: str | None = None
    period_year: int
    period_month: int | str = Field(description="1-12, 'Mar' or 'March'")
    consultant_name: str = Field(min_length=1, max_length=255)
    consultant_email: str = Field(min_length=3, max_length=255)
    invoice_no: str | None = Field(default=None, max_length=100)
    work_location: str | None = Field(default=None, max_length=255)


class DocumentUpload(ArtifactIn):
    document_type: str
    display_name: str | None = None
    is_mandatory: bool | None = None


class ResubmitIn(ArtifactIn):
    """Target by document id, or by type within the submission."""

    document_id: str | None = None
    document_type: str | None = None

    @model_validator(mode="after")
    def _one_target(self) -> "ResubmitIn":
        if not self.document_id and not self.document_type:
            raise ValueError("documentId or documentType is required")
        return self


class DocumentDecisionIn(CamelModel):
    decision: ReviewDecision
    remarks: str | None = None


class FinalDecisionIn(CamelModel):
    decision: FinalDecision
    remarks: str | None = None


class BulkDecisionIn(CamelModel):
    submission_ids: list[str] = Field(min_length=1)
    decision: ReviewDecision
    remarks: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class BulkDecisionResult(CamelModel):
    id: str
    success: bool
    message: str


class DocumentOut(CamelModel):
    id: str
    document_type: str
    display_name: str
    storage_ref: str
    file_name: str | None = None
    file_size_bytes: int | None = None
    file_type: str | None = None
    is_mandatory: bool
    status: DocumentStatus
    reviewer_remarks: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    uploaded_at: datetime
    version: int
    remark_history: list[dict[str, Any]] = []


class RejectionOut(CamelModel):
    id: str
    document_id: str | None = None
    document_type: str
    reason: str | None = None
    rejected_at: datetime
    rejected_by: str | None = None
    is_resubmitted: bool
    resubmitted_at: datetime | None = None


class SubmissionSummaryOut(CamelModel):
    total: int
    approved: int
    rejected: int
    pending: int


class ChecklistOut(CamelModel):
    required: list[str]
    present: list[str]
    missing: list[str]
    can_submit_for_review: bool


class SubmissionOut(CamelModel):
    id: str
    submission_code: str
    vendor_id: str
    consultant_name: str
    consultant_email: str
    period_year: int
    period_month: int
    invoice_no: str | None = None
    work_location: str
    # Effective status (overlay applied); computed_status is the raw aggregate
    status: SubmissionStatus
    computed_status: SubmissionStatus
    submitted_at: datetime | None = None
    final_decision: FinalDecision | None = None
    final_decided_by: str | None = None
    final_decided_at: datetime | None = None
    final_remarks: str | None = None
    created_at: datetime
    updated_at: datetime
    documents: list[DocumentOut]
    rejections: list[RejectionOut]
    summary: SubmissionSummaryOut
    checklist: ChecklistOut

    @classmethod
    def from_submission(cls, submission: Submission) -> "SubmissionOut":
        report = completeness(submission)
        return cls(
            id=submission.id,
            submission_code=submission.submission_code,
            vendor_id=submission.vendor_id,
            consultant_name=submission.consultant_name,
            consultant_email=submission.consultant_email,
            period_year=submission.period_year,
            period_month=submission.period_month,
            invoice_no=submission.invoice_no,
            work_location=submission.work_location,
            status=submission.effective_status,
            computed_status=submission.status,
            submitted_at=submission.submitted_at,
            final_decision=submission.final_decision,
            final_decided_by=submission.final_decided_by,
            final_decided_at=submission.final_decided_at,
            final_remarks=submission.final_remarks,
            created_at=submission.created_at,
            updated_at=submission.updated_at,
            documents=[DocumentOut.model_validate(d) for d in submission.documents],
            rejections=[RejectionOut.model_validate(r) for r in submission.rejections],
            summary=SubmissionSummaryOut(**document_counts(submission)),
            checklist=ChecklistOut(
                required=[t.value for t in report.required],
                present=[t.value for t in report.present],
                missing=[t.value for t in report.missing],
                can_submit_for_review=report.is_complete,
            ),
        )


class StatusCountOut(CamelModel):
    period_year: int | None = None
    period_month: int | None = None
    total: int
    counts: dict[SubmissionStatus, int]
