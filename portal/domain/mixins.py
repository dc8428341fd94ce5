"""Reusable SQLAlchemy column mixins."""

from __future__ import annotations

from datetime import datetime, timezone

from typing import Optional

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin:
    """Insert time only; for rows that are never updated."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )


class TimestampMixin(CreatedAtMixin):
    """Adds updated_at on top of created_at.

    Workflow code sets ``updated_at`` explicitly on every change; ``onupdate``
    only covers writes made outside it.
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """Rows are hidden, never removed. Repositories filter on ``deleted_at``."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
