"""Submission-level status as a pure function of document statuses.

Precedence matters: any rejection (or pending resubmission) outranks documents
still under review, which outrank freshly uploaded ones. A single rejection is
the most actionable signal for the vendor regardless of how the rest look.
"""

from collections.abc import Iterable
from typing import Protocol

from portal.domain.statuses import DocumentStatus, SubmissionStatus


class HasStatus(Protocol):
    status: DocumentStatus


_NEEDS_VENDOR = frozenset({DocumentStatus.REJECTED, DocumentStatus.RESUBMITTED})


def aggregate_statuses(statuses: Iterable[DocumentStatus]) -> SubmissionStatus:
    present = set(statuses)
    if not present:
        return SubmissionStatus.DRAFT
    if present == {DocumentStatus.APPROVED}:
        return SubmissionStatus.FULLY_APPROVED
    if present & _NEEDS_VENDOR:
        return SubmissionStatus.REQUIRES_RESUBMISSION
    if DocumentStatus.UNDER_REVIEW in present:
        return SubmissionStatus.UNDER_REVIEW
    if DocumentStatus.UPLOADED in present:
        return SubmissionStatus.SUBMITTED
    # Unreachable with the five canonical document statuses; kept so the
    # function stays total if the status vocabulary ever grows.
    return SubmissionStatus.PARTIALLY_APPROVED


def aggregate(documents: Iterable[HasStatus]) -> SubmissionStatus:
    return aggregate_statuses(DocumentStatus(doc.status) for doc in documents)
