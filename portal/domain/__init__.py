"""Domain package — all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  statuses.py         — canonical DocumentStatus / SubmissionStatus / decision enums
  submission.py       — Submission aggregate, its documents and rejection records
  legacy_document.py  — read-only flat document store kept for backward compatibility
  audit.py            — Immutable audit trail (never updated or deleted)
  mixins.py           — CreatedAt / Timestamp / SoftDelete column mixins
"""

from portal.domain.audit import AuditTrail
from portal.domain.legacy_document import LegacyDocument
from portal.domain.submission import RejectionRecord, Submission, SubmissionDocument

__all__ = [
    "AuditTrail",
    "LegacyDocument",
    "RejectionRecord",
    "Submission",
    "SubmissionDocument",
]
