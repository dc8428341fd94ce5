"""Rejection -> corrected upload -> back into review.

The handler only works out *which* document is being answered; the guard
and the mutation itself belong to ``document_workflow.resubmit``.
"""


from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFoundError, ValidationError
from portal.domain.submission import Submission, SubmissionDocument
from portal.services.document_types import label_for, parse_document_type
from portal.services.reconciliation import ReconciliationAdapter
from portal.services.submission_aggregate import document_for_type


class ResubmissionHandler:
    def __init__(self, session: AsyncSession):
        self._adapter = ReconciliationAdapter(session)

    async def locate(
        self,
        submission_ref: str | None,
        *,
        document_id: str | None = None,
        document_type: str | None = None,
    ) -> tuple[Submission, SubmissionDocument]:
        if not document_id and not document_type:
            raise ValidationError("A document id or document type is required")

        if submission_ref:
            submission = await self._adapter.get_submission(submission_ref)
        else:
            # Bare document id: let the adapter work out the owner
            submission = await self._adapter.locate_submission_for_document(document_id)

        if document_id:
            for document in submission.documents:
                if document.id == document_id:
                    return submission, document
            if submission_ref:
                # The caller's submission and the document disagree
                owner = await self._adapter.locate_submission_for_document(document_id)
                for document in owner.documents:
                    if document.id == document_id:
                        return owner, document
            raise NotFoundError("Document", document_id)

        code = parse_document_type(document_type)
        document = document_for_type(submission, code)
        if document is None:
            raise NotFoundError(
                f"{label_for(code)} in submission {submission.submission_code}"
            )
        return submission, document
