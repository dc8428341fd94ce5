"""Canonical status vocabularies.

These enums are the only status values business logic ever compares against.
Raw strings coming from the legacy flat store are mapped onto them in
``portal.services.reconciliation`` before anything else sees them.
"""

from enum import Enum


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESUBMITTED = "resubmitted"


class SubmissionStatus(str, Enum):
    """Aggregate status, always derived from the contained documents."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    PARTIALLY_APPROVED = "partially_approved"
    FULLY_APPROVED = "fully_approved"
    REQUIRES_RESUBMISSION = "requires_resubmission"


class ReviewDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class FinalDecision(str, Enum):
    """Holistic decision layered on top of a fully approved submission."""

    FINAL_APPROVED = "final_approved"
    CHANGES_REQUIRED = "changes_required"


# reviewed_by / reviewed_at are set exactly when a document is in one of these
DECIDED_STATUSES = frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED})
