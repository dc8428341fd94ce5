"""Document-shaped read models and document type catalog schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from portal.domain.statuses import DocumentStatus
from portal.schemas.common import CamelModel
from portal.services.document_types import DocumentCategory, DocumentType


class DocumentSource(str, Enum):
    """Which physical store backs a resolved document."""

    LEGACY = "legacy"
    SUBMISSION = "submission"


class DocumentView(CamelModel):
    """One logical document, whichever store it lives in.

    ``status`` is always canonical; legacy raw values are mapped before a
    view is built.
    """

    id: str
    source: DocumentSource
    submission_id: str | None = None
    submission_code: str | None = None
    vendor_id: str
    document_type: str
    display_name: str
    storage_ref: str | None = None
    file_name: str | None = None
    is_mandatory: bool = False
    status: DocumentStatus
    reviewer_remarks: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    uploaded_at: datetime | None = None
    version: int = 1


class DocumentOwnerOut(CamelModel):
    document_id: str
    document_type: str
    submission_id: str
    submission_code: str
    vendor_id: str


class DocumentTypeOut(CamelModel):
    code: DocumentType
    label: str
    description: str
    category: DocumentCategory


class DocumentTypeCatalogOut(CamelModel):
    period_month: int
    month_label: str
    mandatory: list[DocumentType]
    categories: dict[DocumentCategory, list[DocumentTypeOut]]
