"""SQLAlchemy ORM model for the legacy flat document store.

Rows here pre-date grouped submissions. They are read for backward
compatibility only; nothing in the portal inserts or updates them.
``status`` keeps the legacy vocabulary (pending, consultant_approved, ...)
and is mapped to ``DocumentStatus`` at the reconciliation boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.domain.mixins import SoftDeleteMixin, TimestampMixin


class LegacyDocument(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "legacy_documents"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # "registration" | "compliance" | "financial" | "technical" | "other"
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Raw legacy status string
    status: Mapped[str] = mapped_column(String(50), default="pending", nullable=False)
    reviewer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
