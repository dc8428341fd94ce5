"""Integration tests for id resolution across the legacy and submission stores."""

from datetime import datetime, timezone

import pytest

from portal.core.exceptions import NotFoundError, PreconditionError
from portal.domain.legacy_document import LegacyDocument
from portal.domain.statuses import DocumentStatus
from portal.schemas.document import DocumentSource
from portal.schemas.submission import ResubmitIn
from portal.services.reconciliation import ReconciliationAdapter
from portal.services.submission import SubmissionService


@pytest.fixture
async def legacy_records(session_factory):
    async with session_factory() as session:
        session.add_all(
            [
                LegacyDocument(
                    id="legacy-approved",
                    title="GST certificate",
                    vendor_id="vendor-1",
                    document_type="registration",
                    file_path="legacy/gst.pdf",
                    status="consultant_approved",
                    reviewer_id="consultant-9",
                    reviewed_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
                ),
                LegacyDocument(
                    id="legacy-pending",
                    title="PAN card",
                    vendor_id="vendor-1",
                    document_type="registration",
                    status="pending",
                    reviewer_id="consultant-9",
                ),
                LegacyDocument(
                    id="legacy-retired",
                    title="Old licence",
                    vendor_id="vendor-1",
                    document_type="compliance",
                    status="approved",
                    is_active=False,
                ),
            ]
        )
        await session.commit()


class TestResolutionOrder:
    async def test_legacy_record(self, session, legacy_records):
        view = await ReconciliationAdapter(session).resolve("legacy-approved")

        assert view.source is DocumentSource.LEGACY
        assert view.status is DocumentStatus.APPROVED
        assert view.reviewed_by == "consultant-9"

    async def test_legacy_pending_is_uploaded_without_reviewer(self, session, legacy_records):
        view = await ReconciliationAdapter(session).resolve("legacy-pending")
        assert view.status is DocumentStatus.UPLOADED
        assert view.reviewed_by is None

    async def test_inactive_legacy_record_is_invisible(self, session, legacy_records):
        with pytest.raises(NotFoundError):
            await ReconciliationAdapter(session).resolve("legacy-retired")

    async def test_submission_ref_resolves_to_first_document(self, seed, session_factory, vendor):
        submission = await seed(vendor, types=["INVOICE", "ECR"])

        async with session_factory() as session:
            adapter = ReconciliationAdapter(session)
            by_id = await adapter.resolve(submission.id)
            by_code = await adapter.resolve(submission.submission_code)

        assert by_id.source is DocumentSource.SUBMISSION
        assert by_id.document_type == "INVOICE"
        assert by_code == by_id

    async def test_nested_document_id(self, seed, session_factory, vendor):
        submission = await seed(vendor, types=["INVOICE", "ECR"])
        ecr = submission.documents[1]

        async with session_factory() as session:
            view = await ReconciliationAdapter(session).resolve(ecr.id)

        assert view.id == ecr.id
        assert view.submission_id == submission.id
        assert view.document_type == "ECR"

    async def test_resolution_is_idempotent(self, seed, session_factory, vendor):
        submission = await seed(vendor, types=["INVOICE"])

        async with session_factory() as session:
            adapter = ReconciliationAdapter(session)
            first = await adapter.resolve(submission.submission_code)
            again = await adapter.resolve(first.id)

        assert again == first

    async def test_submission_without_documents_has_no_view(self, seed, session_factory, vendor):
        submission = await seed(vendor)
        async with session_factory() as session:
            adapter = ReconciliationAdapter(session)
            assert await adapter.find(submission.id) is None
            with pytest.raises(NotFoundError):
                await adapter.resolve(submission.id)

    async def test_unknown_ref(self, session):
        with pytest.raises(NotFoundError):
            await ReconciliationAdapter(session).resolve("does-not-exist")


class TestWriteRouting:
    async def test_legacy_record_is_read_only(self, session, legacy_records, vendor):
        with pytest.raises(PreconditionError):
            await SubmissionService(session).resubmit_document(
                None,
                vendor,
                ResubmitIn(document_id="legacy-approved", storage_ref="vendor-1/gst-v2.pdf"),
            )

    async def test_resubmit_by_bare_document_id(self, seed, session_factory, vendor, consultant):
        submission = await seed(vendor, types=["INVOICE"])
        document = submission.documents[0]
        async with session_factory() as session:
            await SubmissionService(session).decide_document(
                submission.id, document.id, "rejected", "Unsigned", consultant
            )
            await session.commit()

        async with session_factory() as session:
            outcome = await SubmissionService(session).resubmit_document(
                None,
                vendor,
                ResubmitIn(document_id=document.id, storage_ref="vendor-1/invoice-signed.pdf"),
            )
            await session.commit()

        assert outcome.value.id == document.id
        assert outcome.value.status is DocumentStatus.RESUBMITTED

    async def test_mismatched_submission_ref_follows_the_document(
        self, seed, session_factory, vendor, consultant
    ):
        march = await seed(vendor, types=["INVOICE"])
        april = await seed(vendor, month=4, types=["ECR"])
        ecr = april.documents[0]
        async with session_factory() as session:
            await SubmissionService(session).decide_document(
                april.id, ecr.id, "rejected", "Wrong month", consultant
            )
            await session.commit()

        async with session_factory() as session:
            outcome = await SubmissionService(session).resubmit_document(
                march.id,
                vendor,
                ResubmitIn(document_id=ecr.id, storage_ref="vendor-1/4/ecr-v2.pdf"),
            )
            await session.commit()

        async with session_factory() as session:
            stored = await SubmissionService(session).get_submission_status(april.id)
            assert stored.documents[0].status is DocumentStatus.RESUBMITTED
        assert outcome.value.id == ecr.id

    async def test_unknown_document_type_in_submission(self, seed, session_factory, vendor):
        submission = await seed(vendor, types=["INVOICE"])
        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await SubmissionService(session).resubmit_document(
                    submission.id,
                    vendor,
                    ResubmitIn(document_type="ECR", storage_ref="vendor-1/ecr.pdf"),
                )

    async def test_document_owner_lookup(self, seed, session_factory, vendor):
        submission = await seed(vendor, types=["INVOICE"])
        document = submission.documents[0]
        async with session_factory() as session:
            owner = await SubmissionService(session).find_document_owner(document.id)
        assert owner.submission_code == submission.submission_code
        assert owner.vendor_id == vendor.id
