"""Application-level exceptions and FastAPI exception handlers."""


import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} not found" if not entity_id else f"{entity} '{entity_id}' not found"
        super().__init__(msg, status_code=404, code="NOT_FOUND")

class AuthorizationError(AppException):
    """The actor does not own the resource it is acting on."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403, code="FORBIDDEN")

class UnauthorizedError(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")

class ConflictError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="CONFLICT")

class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")

class InvalidStateError(AppException):
    """The requested transition is not permitted from the current status."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="INVALID_STATE")

class PreconditionError(AppException):
    """A guard condition is unmet (e.g. resubmitting without an open rejection)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="PRECONDITION_FAILED")

class IncompleteSubmissionError(AppException):
    """Mandatory documents are missing; ``missing_types`` lists exactly which."""

    def __init__(self, missing_types: list[str]):
        self.missing_types = list(missing_types)
        super().__init__(
            f"Missing mandatory documents: {', '.join(self.missing_types)}",
            status_code=422,
            code="INCOMPLETE_SUBMISSION",
            details={"missingTypes": self.missing_types},
        )

class ConcurrentModificationError(AppException):
    """Another request modified the submission after it was loaded."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} '{entity_id}' was modified concurrently; reload and retry",
            status_code=409,
            code="CONCURRENT_MODIFICATION",
        )

class InfrastructureError(AppException):
    """Unexpected datastore failure. Never retried inside the core."""

    def __init__(self, message: str = "Datastore unavailable"):
        super().__init__(message, status_code=503, code="INFRASTRUCTURE_ERROR")

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(SQLAlchemyError)
    async def datastore_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Datastore failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=503,
            content=_error_body("INFRASTRUCTURE_ERROR", "Datastore unavailable"),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("NOT_FOUND", "Resource not found"),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
