"""Unit tests for the document state machine.

All tests run on in-memory submissions; no database is involved.
"""

import itertools

import pytest

from portal.core.actor import Actor, Role
from portal.core.config import settings
from portal.core.exceptions import (
    AuthorizationError,
    IncompleteSubmissionError,
    InvalidStateError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from portal.domain.statuses import (
    DECIDED_STATUSES,
    DocumentStatus,
    FinalDecision,
    SubmissionStatus,
)
from portal.services import document_workflow as wf
from portal.services.document_types import MONTHLY_MANDATORY_TYPES, DocumentType
from portal.services.notifications import NotificationKind
from portal.services.submission_aggregate import (
    can_submit_for_review,
    completeness,
    open_rejections,
)

MONTHLY = [t.value for t in MONTHLY_MANDATORY_TYPES]


class TestTransitionTable:
    def test_table_covers_every_status(self):
        assert set(wf.ALLOWED_TRANSITIONS) == set(DocumentStatus)

    def test_approved_is_terminal(self):
        assert wf.ALLOWED_TRANSITIONS[DocumentStatus.APPROVED] == frozenset()

    @pytest.mark.parametrize(
        "current,target", list(itertools.product(DocumentStatus, DocumentStatus))
    )
    def test_can_transition_matches_table(self, current, target):
        assert wf.can_transition(current, target) is (target in wf.ALLOWED_TRANSITIONS[current])


class TestDecideGuards:
    @pytest.mark.parametrize(
        "current,decision",
        list(itertools.product(DocumentStatus, ["approved", "rejected"])),
    )
    def test_decide_succeeds_iff_listed(self, make_submission, consultant, current, decision):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        document.status = current
        target = DocumentStatus(decision)

        if wf.can_transition(current, target):
            wf.decide(submission, document.id, decision, "checked", consultant)
            assert document.status is target
        else:
            with pytest.raises(InvalidStateError):
                wf.decide(submission, document.id, decision, "checked", consultant)
            assert document.status is current

    def test_decision_stamps_reviewer(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        assert document.reviewed_by is None and document.reviewed_at is None

        wf.decide(submission, document.id, "approved", "fine", consultant)

        assert document.status in DECIDED_STATUSES
        assert document.reviewed_by == consultant.id
        assert document.reviewed_at is not None
        assert document.remark_history[-1]["status"] == "approved"
        assert document.remark_history[-1]["remarks"] == "fine"

    def test_repeated_decision_fails_loudly(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        wf.decide(submission, document.id, "rejected", "blurry", consultant)

        with pytest.raises(InvalidStateError):
            wf.decide(submission, document.id, "rejected", "blurry", consultant)
        assert len(open_rejections(submission, "INVOICE")) == 1

    def test_unknown_decision(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        with pytest.raises(ValidationError):
            wf.decide(submission, submission.documents[0].id, "maybe", None, consultant)

    def test_unknown_document(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        with pytest.raises(NotFoundError):
            wf.decide(submission, "missing", "approved", None, consultant)

    def test_vendor_cannot_review_own_submission(self, make_submission, vendor):
        submission = make_submission(types=["INVOICE"])
        impostor = Actor(id=vendor.id, role=Role.CONSULTANT)
        with pytest.raises(AuthorizationError):
            wf.decide(submission, submission.documents[0].id, "approved", None, impostor)

    def test_rejection_opens_record_and_notifies_vendor(self, make_submission, consultant, vendor):
        submission = make_submission(types=["INVOICE", "ECR"])
        document = submission.documents[0]

        result = wf.decide(submission, document.id, "rejected", "Wrong month", consultant)

        records = open_rejections(submission, "INVOICE")
        assert len(records) == 1
        assert records[0].reason == "Wrong month"
        assert records[0].rejected_by == consultant.id
        assert submission.status is SubmissionStatus.REQUIRES_RESUBMISSION
        assert [e.kind for e in result.events] == [NotificationKind.DOCUMENT_REJECTED]
        assert result.events[0].recipient_id == vendor.id

    def test_last_decision_notifies_admins(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE", "ECR"])
        first, second = submission.documents

        result = wf.decide(submission, first.id, "approved", None, consultant)
        assert all(e.kind is not NotificationKind.WORKFLOW_UPDATE for e in result.events)

        result = wf.decide(submission, second.id, "rejected", "Missing page", consultant)
        completion = [e for e in result.events if e.kind is NotificationKind.WORKFLOW_UPDATE]
        assert len(completion) == 1
        assert completion[0].recipient_id == settings.admin_notification_recipient
        assert "1 documents approved, 1 documents rejected" in completion[0].summary


class TestStartReview:
    def test_uploaded_moves_to_under_review(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        result = wf.start_review(submission, submission.documents[0].id, consultant)

        assert result.document.status is DocumentStatus.UNDER_REVIEW
        assert submission.status is SubmissionStatus.UNDER_REVIEW
        assert [e.kind for e in result.events] == [NotificationKind.DOCUMENT_REVIEW]

    def test_repeat_is_noop_without_events(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        wf.start_review(submission, document.id, consultant)

        result = wf.start_review(submission, document.id, consultant)
        assert result.events == []
        assert document.status is DocumentStatus.UNDER_REVIEW

    @pytest.mark.parametrize("status", [DocumentStatus.APPROVED, DocumentStatus.REJECTED])
    def test_decided_documents_cannot_reenter_review(self, make_submission, consultant, status):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        document.status = status
        with pytest.raises(InvalidStateError):
            wf.start_review(submission, document.id, consultant)


class TestUpload:
    def test_first_upload(self, make_submission, vendor, artifact):
        submission = make_submission()
        result = wf.upload(submission, vendor, "bank_statement", artifact())

        document = result.document
        assert document.document_type == "BANK_STATEMENT"
        assert document.status is DocumentStatus.UPLOADED
        assert document.is_mandatory is True
        assert document.version == 1
        assert submission.status is SubmissionStatus.SUBMITTED
        assert result.events[0].recipient_id == submission.consultant_email

    def test_optional_type_defaults_to_not_mandatory(self, make_submission, vendor, artifact):
        submission = make_submission()
        document = wf.upload(submission, vendor, "VENDOR_AGREEMENT", artifact()).document
        assert document.is_mandatory is False

    def test_only_owner_may_upload(self, make_submission, other_vendor, admin, artifact):
        submission = make_submission()
        with pytest.raises(AuthorizationError):
            wf.upload(submission, other_vendor, "ECR", artifact())
        with pytest.raises(AuthorizationError):
            wf.upload(submission, admin, "ECR", artifact())

    def test_unknown_type(self, make_submission, vendor, artifact):
        with pytest.raises(ValidationError):
            wf.upload(make_submission(), vendor, "PASSPORT", artifact())

    def test_replacing_uploaded_document_keeps_one_per_type(self, make_submission, vendor, artifact):
        submission = make_submission(types=["ECR"])
        original = submission.documents[0]
        old_ref = original.storage_ref

        result = wf.upload(submission, vendor, "ECR", artifact("ecr-v2.pdf"))

        assert len(submission.documents) == 1
        assert result.document is original
        assert original.version == 2
        assert result.released_artifacts == [old_ref]

    def test_rejected_document_must_be_resubmitted(self, make_submission, vendor, consultant, artifact):
        submission = make_submission(types=["ECR"])
        wf.decide(submission, submission.documents[0].id, "rejected", "unreadable", consultant)
        with pytest.raises(PreconditionError):
            wf.upload(submission, vendor, "ECR", artifact())

    def test_document_in_review_cannot_be_replaced(self, make_submission, vendor, consultant, artifact):
        submission = make_submission(types=["ECR"])
        wf.start_review(submission, submission.documents[0].id, consultant)
        with pytest.raises(InvalidStateError):
            wf.upload(submission, vendor, "ECR", artifact())

    def test_fully_approved_submission_is_closed(self, fully_approved, vendor, artifact):
        submission = fully_approved()
        assert submission.status is SubmissionStatus.FULLY_APPROVED
        with pytest.raises(ValidationError):
            wf.upload(submission, vendor, "VENDOR_AGREEMENT", artifact())


class TestResubmission:
    def _rejected(self, make_submission, consultant):
        submission = make_submission(types=["INVOICE", "ECR"])
        document = submission.documents[0]
        wf.decide(submission, document.id, "rejected", "Totals do not match", consultant)
        return submission, document

    def test_resubmit_closes_exactly_one_rejection(self, make_submission, consultant, vendor, artifact):
        submission, document = self._rejected(make_submission, consultant)
        before = len(open_rejections(submission, "INVOICE"))

        result = wf.resubmit(submission, document, artifact("invoice-v2.pdf"), vendor)

        assert len(open_rejections(submission, "INVOICE")) == before - 1
        assert document.status is DocumentStatus.RESUBMITTED
        assert document.version == 2
        assert submission.rejections[0].resubmitted_at is not None
        assert [e.kind for e in result.events] == [NotificationKind.DOCUMENT_RESUBMITTED]
        assert result.events[0].recipient_id == submission.consultant_email

    def test_resubmit_keeps_remarks_and_clears_decision_stamp(
        self, make_submission, consultant, vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), vendor)

        assert document.reviewer_remarks == "Totals do not match"
        assert document.reviewed_by is None
        assert document.reviewed_at is None
        statuses = [entry["status"] for entry in document.remark_history]
        assert statuses == ["rejected", "resubmitted"]
        assert document.remark_history[-1]["remarks"] == "Totals do not match"

    def test_second_resubmit_is_a_precondition_failure(
        self, make_submission, consultant, vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), vendor)

        with pytest.raises(PreconditionError):
            wf.resubmit(submission, document, artifact(), vendor)

    def test_second_resubmit_after_review_started_is_a_precondition_failure(
        self, make_submission, consultant, vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), vendor)
        wf.start_review(submission, document.id, consultant)
        assert document.status is DocumentStatus.UNDER_REVIEW

        with pytest.raises(PreconditionError):
            wf.resubmit(submission, document, artifact("invoice-v3.pdf"), vendor)
        assert document.version == 2

    def test_rejected_again_after_resubmission_can_be_resubmitted(
        self, make_submission, consultant, vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), vendor)
        wf.decide(submission, document.id, "rejected", "Still wrong", consultant)

        wf.resubmit(submission, document, artifact("invoice-v3.pdf"), vendor)
        assert document.status is DocumentStatus.RESUBMITTED
        assert document.version == 3
        assert open_rejections(submission, "INVOICE") == []

    def test_resubmit_approved_document_is_invalid_state(
        self, make_submission, consultant, vendor, artifact
    ):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        wf.decide(submission, document.id, "approved", None, consultant)

        with pytest.raises(InvalidStateError):
            wf.resubmit(submission, document, artifact(), vendor)

    @pytest.mark.parametrize("status", [DocumentStatus.UPLOADED, DocumentStatus.UNDER_REVIEW])
    def test_resubmit_undecided_document_is_invalid_state(
        self, make_submission, vendor, artifact, status
    ):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        document.status = status
        with pytest.raises(InvalidStateError):
            wf.resubmit(submission, document, artifact(), vendor)

    def test_rejected_without_open_record(self, make_submission, vendor, artifact):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        document.status = DocumentStatus.REJECTED
        with pytest.raises(PreconditionError):
            wf.resubmit(submission, document, artifact(), vendor)

    def test_admin_may_resubmit_for_vendor(self, make_submission, consultant, admin, artifact):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), admin)
        assert document.status is DocumentStatus.RESUBMITTED

    def test_other_vendor_may_not_resubmit(
        self, make_submission, consultant, other_vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        with pytest.raises(AuthorizationError):
            wf.resubmit(submission, document, artifact(), other_vendor)

    def test_resubmitted_document_reenters_review(
        self, make_submission, consultant, vendor, artifact
    ):
        submission, document = self._rejected(make_submission, consultant)
        wf.resubmit(submission, document, artifact(), vendor)

        wf.start_review(submission, document.id, consultant)
        wf.decide(submission, document.id, "approved", "Now correct", consultant)
        assert document.status is DocumentStatus.APPROVED
        assert document.reviewer_remarks == "Now correct"


class TestDelete:
    def test_delete_releases_artifact_and_recomputes(self, make_submission, vendor):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]

        result = wf.delete(submission, document.id, vendor)

        assert submission.documents == []
        assert submission.status is SubmissionStatus.DRAFT
        assert result.released_artifacts == [document.storage_ref]

    def test_delete_drops_open_rejection(self, make_submission, vendor, consultant):
        submission = make_submission(types=["INVOICE"])
        document = submission.documents[0]
        wf.decide(submission, document.id, "rejected", "wrong", consultant)

        wf.delete(submission, document.id, vendor)
        assert open_rejections(submission, "INVOICE") == []

    def test_approved_document_cannot_be_deleted(self, make_submission, vendor, consultant):
        submission = make_submission(types=["INVOICE", "ECR"])
        document = submission.documents[0]
        wf.decide(submission, document.id, "approved", None, consultant)
        with pytest.raises(InvalidStateError):
            wf.delete(submission, document.id, vendor)

    def test_only_owner_may_delete(self, make_submission, admin):
        submission = make_submission(types=["INVOICE"])
        with pytest.raises(AuthorizationError):
            wf.delete(submission, submission.documents[0].id, admin)


class TestSubmitForReview:
    def test_complete_march_submission(self, make_submission, vendor):
        """Nine monthly documents, no annual one, month = Mar."""
        submission = make_submission(month=3, types=MONTHLY)
        assert can_submit_for_review(submission)

        result = wf.submit_for_review(submission, vendor)

        assert submission.submitted_at is not None
        assert submission.status is SubmissionStatus.SUBMITTED
        assert [e.kind for e in result.events] == [NotificationKind.DOCUMENT_SUBMISSION]

    def test_missing_bank_statement_is_reported(self, make_submission, vendor):
        submission = make_submission(month=3, types=[t for t in MONTHLY if t != "BANK_STATEMENT"])
        assert not can_submit_for_review(submission)

        with pytest.raises(IncompleteSubmissionError) as exc_info:
            wf.submit_for_review(submission, vendor)
        assert exc_info.value.missing_types == ["BANK_STATEMENT"]
        assert exc_info.value.details == {"missingTypes": ["BANK_STATEMENT"]}

    def test_january_needs_labour_welfare_fund(self, make_submission, vendor):
        submission = make_submission(month=1, types=MONTHLY)
        report = completeness(submission)
        assert report.missing == [DocumentType.LABOUR_WELFARE_FUND]
        with pytest.raises(IncompleteSubmissionError):
            wf.submit_for_review(submission, vendor)


class TestFinalApprovalOverlay:
    def test_finalize_requires_full_approval(self, make_submission, approver):
        submission = make_submission(types=MONTHLY)
        with pytest.raises(InvalidStateError):
            wf.finalize(submission, "final_approved", None, approver)

    def test_final_approval_locks_submission(self, fully_approved, approver, vendor, artifact):
        submission = fully_approved()
        result = wf.finalize(submission, "final_approved", "All good", approver)

        assert submission.is_final_approved
        assert submission.final_decided_by == approver.id
        assert {e.recipient_id for e in result.events} == {
            vendor.id, settings.admin_notification_recipient,
        }
        with pytest.raises(InvalidStateError):
            wf.finalize(submission, "final_approved", None, approver)
        with pytest.raises(InvalidStateError):
            wf.submit_for_review(submission, vendor)

    def test_changes_required_needs_remarks(self, fully_approved, approver):
        with pytest.raises(ValidationError):
            wf.finalize(fully_approved(), "changes_required", "  ", approver)

    def test_unknown_final_decision(self, fully_approved, approver):
        with pytest.raises(ValidationError):
            wf.finalize(fully_approved(), "approved", None, approver)

    def test_changes_required_reopens_without_touching_documents(
        self, fully_approved, approver, vendor, consultant, artifact
    ):
        submission = fully_approved()
        wf.finalize(submission, "changes_required", "Invoice total is off", approver)

        assert submission.status is SubmissionStatus.FULLY_APPROVED
        assert submission.effective_status is SubmissionStatus.REQUIRES_RESUBMISSION
        assert all(d.status is DocumentStatus.APPROVED for d in submission.documents)

        # The vendor can now replace an approved document
        result = wf.upload(submission, vendor, "INVOICE", artifact("invoice-v2.pdf"))
        assert result.document.status is DocumentStatus.UPLOADED
        assert result.document.reviewed_by is None
        assert submission.final_decision is FinalDecision.CHANGES_REQUIRED

        # Submitting again lifts the overlay
        wf.submit_for_review(submission, vendor)
        assert submission.final_decision is None
        assert submission.effective_status is SubmissionStatus.SUBMITTED

        wf.decide(submission, result.document.id, "approved", None, consultant)
        wf.finalize(submission, "final_approved", None, approver)
        assert submission.is_final_approved
