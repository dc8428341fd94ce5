"""Pytest fixtures for the submission workflow.

Provides reusable test fixtures for:
- A throwaway file-backed SQLite database per test (schema via create_all)
- Session factory and a plain session
- Actors for every role
- Builders for in-memory submissions (unit tests) and persisted ones (integration)
- An HTTP client over the app with a capturing notification dispatcher

Usage:
    async def test_upload(client, vendor, headers):
        response = await client.post("/api/v1/submissions", json=..., headers=headers(vendor))
"""

import os

# Set environment variables BEFORE any portal import so Settings picks them up
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUDIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

import portal.domain  # noqa: F401  (registers every model on Base.metadata)
from portal.core.actor import Actor, Role
from portal.db.base import Base, make_session_factory
from portal.domain.statuses import DocumentStatus
from portal.main import create_app
from portal.schemas.submission import DocumentUpload, SubmissionCreate
from portal.services import document_workflow
from portal.services.artifacts import LocalArtifactStore
from portal.services.document_types import MONTHLY_MANDATORY_TYPES
from portal.services.notifications import NotificationEvent
from portal.services.submission import SubmissionService
from portal.services.submission_aggregate import (
    ArtifactRef,
    ConsultantSnapshot,
    Period,
    new_submission,
)

CONSULTANT_EMAIL = "consultant@example.com"


class CapturingDispatcher:
    """Records every event; optionally fails for chosen recipients."""

    def __init__(self, failing_recipients: set[str] | None = None):
        self.events: list[NotificationEvent] = []
        self._failing = failing_recipients or set()

    async def send(self, event: NotificationEvent) -> None:
        if event.recipient_id in self._failing:
            raise ConnectionError(f"transport down for {event.recipient_id}")
        self.events.append(event)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------

@pytest.fixture
def vendor() -> Actor:
    return Actor(id="vendor-1", role=Role.VENDOR)


@pytest.fixture
def other_vendor() -> Actor:
    return Actor(id="vendor-2", role=Role.VENDOR)


@pytest.fixture
def consultant() -> Actor:
    return Actor(id="consultant-1", role=Role.CONSULTANT)


@pytest.fixture
def approver() -> Actor:
    return Actor(id="approver-1", role=Role.APPROVER)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def headers():
    def _headers(actor: Actor) -> dict[str, str]:
        return {"X-Actor-Id": actor.id, "X-Actor-Role": actor.role.value}

    return _headers


# ---------------------------------------------------------------------------
# In-memory builders
# ---------------------------------------------------------------------------

@pytest.fixture
def artifact():
    counter = {"n": 0}

    def _artifact(name: str = "file.pdf") -> ArtifactRef:
        counter["n"] += 1
        return ArtifactRef(
            storage_ref=f"vendor-1/{counter['n']}-{name}",
            file_name=name,
            file_size_bytes=1024,
            file_type="pdf",
        )

    return _artifact


@pytest.fixture
def make_submission(vendor, artifact):
    """Transient submission, optionally pre-filled with uploaded documents."""

    def _make(month: int = 3, types=(), vendor_id: str | None = None):
        submission = new_submission(
            vendor_id or vendor.id,
            Period(year=2025, month=month),
            ConsultantSnapshot(name="Asha Consultant", email=CONSULTANT_EMAIL),
        )
        owner = vendor if vendor_id is None else Actor(id=vendor_id, role=Role.VENDOR)
        for code in types:
            document_workflow.upload(submission, owner, code, artifact(f"{code.lower()}.pdf"))
        return submission

    return _make


@pytest.fixture
def fully_approved(make_submission, consultant):
    """Transient March submission with all nine monthly documents approved."""

    def _build():
        submission = make_submission(types=[t.value for t in MONTHLY_MANDATORY_TYPES])
        for document in list(submission.documents):
            document_workflow.decide(submission, document.id, "approved", None, consultant)
        assert all(d.status is DocumentStatus.APPROVED for d in submission.documents)
        return submission

    return _build


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def submission_body(month=3, **overrides) -> SubmissionCreate:
    values = dict(
        period_year=2025,
        period_month=month,
        consultant_name="Asha Consultant",
        consultant_email=CONSULTANT_EMAIL,
    )
    values.update(overrides)
    return SubmissionCreate(**values)


@pytest.fixture
def seed(session_factory):
    """Persist a submission through the service, uploading each given type."""

    async def _seed(actor: Actor, *, month: int = 3, types=()):
        async with session_factory() as session:
            service = SubmissionService(session)
            submission = (await service.create_submission(actor, submission_body(month))).value
            for code in types:
                await service.upload_document(
                    submission.id,
                    actor,
                    DocumentUpload(
                        document_type=code,
                        storage_ref=f"{actor.id}/{month}/{code.lower()}.pdf",
                    ),
                )
            await session.commit()
            return submission

    return _seed


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def dispatcher() -> CapturingDispatcher:
    return CapturingDispatcher()


@pytest.fixture
def artifact_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
async def client(session_factory, dispatcher, artifact_root):
    app = create_app(
        session_factory=session_factory,
        dispatcher=dispatcher,
        artifact_store=LocalArtifactStore(artifact_root),
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
