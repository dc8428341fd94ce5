"""SQLAlchemy ORM model for the request audit trail.

One row per state-changing HTTP request, written by ``AuditMiddleware`` after
the response has been produced. Rows are immutable.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.base import Base
from portal.domain.mixins import CreatedAtMixin


class AuditTrail(Base, CreatedAtMixin):
    __tablename__ = "audit_trail"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Gateway-forwarded actor; absent on rejected unauthenticated calls
    actor_id: Mapped[Optional[str]] = mapped_column(String(36), index=True, nullable=True)
    actor_role: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Request
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Target: "submission" | "document" | last path segment
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # Submission id/code or document id taken from the path
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
