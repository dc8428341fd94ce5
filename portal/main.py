"""Vendor Compliance Portal — FastAPI application factory."""


import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.core.config import settings
from portal.core.exceptions import register_exception_handlers
from portal.db.base import async_session_factory, get_db, make_get_db
from portal.middleware.audit import AuditMiddleware
from portal.schemas.common import HealthResponse
from portal.services.artifacts import ArtifactStore, LocalArtifactStore
from portal.services.notifications import LoggingNotificationDispatcher, NotificationDispatcher

# v1 routers
from portal.routers.v1.document_types import router as document_types_v1_router
from portal.routers.v1.documents import router as documents_v1_router
from portal.routers.v1.submissions import router as submissions_v1_router

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.is_development else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    dispatcher: NotificationDispatcher | None = None,
    artifact_store: ArtifactStore | None = None,
) -> FastAPI:
    """Build the app. Tests pass their own session factory and dispatcher."""
    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Collaborators ---
    app.state.session_factory = session_factory or async_session_factory
    app.state.dispatcher = dispatcher or LoggingNotificationDispatcher()
    app.state.artifact_store = artifact_store or LocalArtifactStore()
    if session_factory is not None:
        app.dependency_overrides[get_db] = make_get_db(session_factory)

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Audit middleware ---
    if settings.audit_enabled:
        app.add_middleware(AuditMiddleware, session_factory=app.state.session_factory)

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- v1 API routes (/api/v1/*) ---
    app.include_router(submissions_v1_router, prefix="/api/v1")
    app.include_router(documents_v1_router, prefix="/api/v1")
    app.include_router(document_types_v1_router, prefix="/api/v1")

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        try:
            async with app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Health check: datastore unreachable: %s", exc)
            return HealthResponse(
                status="degraded", app=settings.app_name, env=settings.app_env, database="unavailable"
            )
        return HealthResponse(app=settings.app_name, env=settings.app_env)

    return app


app = create_app()
