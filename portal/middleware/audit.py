"""Audit logging middleware — records every state-changing request to audit_trail."""


import asyncio
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from portal.domain.audit import AuditTrail

logger = logging.getLogger(__name__)

# Methods that mutate state
_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Path segments naming a collection, singular form
_COLLECTIONS = {"submissions": "submission", "documents": "document"}


def infer_entity(path: str) -> tuple[str, str | None]:
    """`/api/v1/submissions/<id>/documents/<doc>/decision` -> ("document", "<doc>")."""
    parts = [p for p in path.strip("/").split("/") if p]
    entity_type, entity_id = (parts[-1] if parts else "unknown"), None
    for index, part in enumerate(parts):
        if part in _COLLECTIONS:
            entity_type = _COLLECTIONS[part]
            following = parts[index + 1] if index + 1 < len(parts) else None
            entity_id = following if following and following not in _COLLECTIONS else None
    if entity_id and len(entity_id) > 64:
        entity_id = None
    return entity_type, entity_id


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs all write operations.

    Each audit row is written asynchronously AFTER the response is sent so it
    never adds latency to the request. Failures in audit logging are caught and
    logged; they never raise to the caller.
    """

    def __init__(self, app: ASGIApp, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__(app)
        self._session_factory = session_factory

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000)

        if request.method in _WRITE_METHODS:
            # Fire-and-forget: don't await here so the response is not delayed
            asyncio.create_task(
                self._record(request, response.status_code, duration_ms)
            )

        return response

    async def _record(
        self, request: Request, status_code: int, duration_ms: int
    ) -> None:
        """Persist an audit row. Swallows all errors to avoid cascading failures."""
        path = request.url.path
        try:
            entity_type, entity_id = infer_entity(path)
            async with self._session_factory() as session:
                session.add(
                    AuditTrail(
                        actor_id=request.headers.get("x-actor-id"),
                        actor_role=request.headers.get("x-actor-role"),
                        ip_address=request.client.host if request.client else None,
                        user_agent=request.headers.get("user-agent"),
                        method=request.method,
                        path=path[:500],
                        status_code=status_code,
                        duration_ms=duration_ms,
                        entity_type=entity_type,
                        entity_id=entity_id,
                        description=f"{request.method} {path} → {status_code} ({duration_ms}ms)",
                    )
                )
                await session.commit()
        except Exception as exc:  # pragma: no cover
            logger.warning("Audit row for %s %s not written: %s", request.method, path, exc)
