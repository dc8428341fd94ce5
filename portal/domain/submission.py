"""SQLAlchemy ORM models for vendor submissions, their documents and rejection provenance."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.db.base import Base
from portal.domain.mixins import SoftDeleteMixin, TimestampMixin, utcnow
from portal.domain.statuses import (
    DocumentStatus,
    FinalDecision,
    SubmissionStatus,
)


def _enum(enum_cls: type) -> Enum:
    """Store the enum *value* (e.g. "under_review") as plain VARCHAR."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )


def _uuid() -> str:
    return str(uuid.uuid4())


class Submission(Base, TimestampMixin, SoftDeleteMixin):
    """One vendor's document set for one (year, month) reporting period.

    ``status`` is a cache of the status aggregator over ``documents``; it is
    only ever written by ``portal.services.submission_aggregate.refresh_status``.
    ``final_decision`` is the explicit overlay recorded after full approval.
    """

    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Human readable, e.g. SUB-2025-Mar-7QK2ZD
    submission_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # Consultant snapshot (not a live reference to the user store)
    consultant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    consultant_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    period_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # 1-12

    invoice_no: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    work_location: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[SubmissionStatus] = mapped_column(
        _enum(SubmissionStatus), default=SubmissionStatus.DRAFT, nullable=False, index=True
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Final-approval overlay
    final_decision: Mapped[Optional[FinalDecision]] = mapped_column(
        _enum(FinalDecision), nullable=True
    )
    final_decided_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    final_decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    final_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Set once any document has been approved; blocks deletion for the audit trail
    has_approved_document: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Optimistic concurrency: every UPDATE checks and bumps this counter
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False)

    documents: Mapped[List["SubmissionDocument"]] = relationship(
        back_populates="submission",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="SubmissionDocument.position",
    )
    rejections: Mapped[List["RejectionRecord"]] = relationship(
        back_populates="submission",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="RejectionRecord.rejected_at",
    )

    __mapper_args__ = {"version_id_col": lock_version}

    @property
    def effective_status(self) -> SubmissionStatus:
        """Computed status with the changes-required overlay applied."""
        if self.final_decision is FinalDecision.CHANGES_REQUIRED:
            return SubmissionStatus.REQUIRES_RESUBMISSION
        return self.status

    @property
    def is_final_approved(self) -> bool:
        return self.final_decision is FinalDecision.FINAL_APPROVED


class SubmissionDocument(Base):
    """One uploaded artifact inside a submission."""

    __tablename__ = "submission_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    submission_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    document_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Opaque artifact reference (path / object key), never interpreted here
    storage_ref: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    file_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        _enum(DocumentStatus), default=DocumentStatus.UPLOADED, nullable=False, index=True
    )
    reviewer_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Append-only list of {version, status, remarks, actorId, at}
    remark_history: Mapped[List[Any]] = mapped_column(JSON, default=list, nullable=False)

    submission: Mapped["Submission"] = relationship(back_populates="documents")


class RejectionRecord(Base):
    """Provenance of a rejection; closed by the resubmission that answers it."""

    __tablename__ = "rejection_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    submission_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    document_type: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_resubmitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resubmitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    submission: Mapped["Submission"] = relationship(back_populates="rejections")
