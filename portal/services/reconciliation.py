"""Legacy reconciliation: one logical document view over two physical stores.

Documents exist either as flat rows in ``legacy_documents`` (read-only, kept
for backward compatibility) or nested inside a ``Submission``. Every read path
resolves ids through ``ReconciliationAdapter`` so there is exactly one
resolution order:

  (a) flat legacy record by id
  (b) submission by id or code, viewed through its first document
  (c) submission containing a nested document with that id

Raw status strings from either store are mapped onto ``DocumentStatus`` here
and nowhere else. New writes always target the submission store.
"""


import logging

from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFoundError, PreconditionError, ValidationError
from portal.domain.legacy_document import LegacyDocument
from portal.domain.statuses import DECIDED_STATUSES, DocumentStatus
from portal.domain.submission import Submission, SubmissionDocument
from portal.repositories.legacy_document import LegacyDocumentRepository
from portal.repositories.submission import SubmissionRepository
from portal.schemas.document import DocumentSource, DocumentView

logger = logging.getLogger(__name__)

# "pending" and "uploaded" name the same state in the two stores
LEGACY_STATUS_MAP: dict[str, DocumentStatus] = {
    "pending": DocumentStatus.UPLOADED,
    "uploaded": DocumentStatus.UPLOADED,
    "under_review": DocumentStatus.UNDER_REVIEW,
    "approved": DocumentStatus.APPROVED,
    "consultant_approved": DocumentStatus.APPROVED,
    "final_approved": DocumentStatus.APPROVED,
    "rejected": DocumentStatus.REJECTED,
    "consultant_rejected": DocumentStatus.REJECTED,
    "final_rejected": DocumentStatus.REJECTED,
    "resubmitted": DocumentStatus.RESUBMITTED,
}


def canonical_status(raw: str | DocumentStatus) -> DocumentStatus:
    if isinstance(raw, DocumentStatus):
        return raw
    try:
        return LEGACY_STATUS_MAP[str(raw).strip().lower()]
    except KeyError:
        raise ValidationError(f"Unknown document status: {raw!r}") from None


def _decision_stamp(status: DocumentStatus, reviewed_by, reviewed_at) -> dict:
    if status in DECIDED_STATUSES:
        return {"reviewed_by": reviewed_by, "reviewed_at": reviewed_at}
    return {"reviewed_by": None, "reviewed_at": None}


def view_of_legacy(record: LegacyDocument) -> DocumentView:
    status = canonical_status(record.status)
    return DocumentView(
        id=record.id,
        source=DocumentSource.LEGACY,
        vendor_id=record.vendor_id,
        document_type=record.document_type,
        display_name=record.title,
        storage_ref=record.file_path,
        file_name=record.file_name,
        status=status,
        reviewer_remarks=record.review_notes,
        uploaded_at=record.submitted_at or record.created_at,
        version=record.version,
        **_decision_stamp(status, record.reviewer_id, record.reviewed_at),
    )


def view_of_nested(submission: Submission, document: SubmissionDocument) -> DocumentView:
    status = canonical_status(document.status)
    return DocumentView(
        id=document.id,
        source=DocumentSource.SUBMISSION,
        submission_id=submission.id,
        submission_code=submission.submission_code,
        vendor_id=submission.vendor_id,
        document_type=document.document_type,
        display_name=document.display_name,
        storage_ref=document.storage_ref,
        file_name=document.file_name,
        is_mandatory=document.is_mandatory,
        status=status,
        reviewer_remarks=document.reviewer_remarks,
        uploaded_at=document.uploaded_at,
        version=document.version,
        **_decision_stamp(status, document.reviewed_by, document.reviewed_at),
    )


class ReconciliationAdapter:
    def __init__(self, session: AsyncSession):
        self._submissions = SubmissionRepository(session)
        self._legacy = LegacyDocumentRepository(session)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def find(self, ref: str) -> DocumentView | None:
        legacy = await self._legacy.get_by_id(ref)
        if legacy is not None:
            return view_of_legacy(legacy)

        submission = await self._submissions.get_by_id_or_code(ref)
        if submission is not None:
            if not submission.documents:
                logger.debug("Submission %s has no documents to view", submission.submission_code)
                return None
            return view_of_nested(submission, submission.documents[0])

        owner = await self._submissions.get_by_document_id(ref)
        if owner is not None:
            for document in owner.documents:
                if document.id == ref:
                    return view_of_nested(owner, document)
        return None

    async def resolve(self, ref: str) -> DocumentView:
        view = await self.find(ref)
        if view is None:
            raise NotFoundError("Document", ref)
        return view

    async def get_submission(self, ref: str) -> Submission:
        """Submission by UUID or human-readable code."""
        submission = await self._submissions.get_by_id_or_code(ref)
        if submission is None:
            raise NotFoundError("Submission", ref)
        return submission

    # ------------------------------------------------------------------
    # Write routing
    # ------------------------------------------------------------------

    async def locate_submission_for_document(self, document_id: str) -> Submission:
        """The submission that must receive a write aimed at *document_id*.

        Legacy flat records are never a write target.
        """
        owner = await self._submissions.get_by_document_id(document_id)
        if owner is not None:
            return owner
        if await self._legacy.get_by_id(document_id) is not None:
            raise PreconditionError(
                f"Document '{document_id}' belongs to the legacy store and is read-only; "
                "upload it to a submission instead"
            )
        raise NotFoundError("Document", document_id)
