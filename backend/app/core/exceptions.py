"""
Domain error taxonomy.

Services raise these; the handlers registered in `register_exception_handlers`
turn them into `{"success": false, "error_kind": ..., "message": ...}`
responses so every failure is machine-distinguishable.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from app.core.logging import get_logger

logger = get_logger(__name__)


class BookingSystemError(Exception):
    """Base exception for all booking system errors."""

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(BookingSystemError):
    """Missing or malformed input."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingSystemError):
    """Referenced entity does not exist."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingSystemError):
    """Overlapping booking or duplicate position id."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(BookingSystemError):
    """Caller lacks a credential, or lacks the role required for the action."""

    kind = "authorization_error"
    status_code = status.HTTP_403_FORBIDDEN


class DependencyError(BookingSystemError):
    """Identity provider or persistence layer unreachable / returned garbage."""

    kind = "dependency_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def error_body(kind: str, message: str) -> dict:
    return {"success": False, "error_kind": kind, "message": message}


async def _booking_system_error_handler(request: Request, exc: BookingSystemError) -> JSONResponse:
    logger.info("request_rejected", error_kind=exc.kind, message=exc.message)
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message),
        headers=headers,
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(ValidationError.kind, message),
    )


async def _database_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    logger.error("database_unavailable", error=str(exc.orig) if exc.orig else str(exc))
    return JSONResponse(
        status_code=DependencyError.status_code,
        content=error_body(DependencyError.kind, "Persistence layer unavailable"),
    )


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # unique or foreign key violation from a write that raced a concurrent one
    logger.warning("integrity_conflict", error=str(exc.orig) if exc.orig else str(exc))
    return JSONResponse(
        status_code=ConflictError.status_code,
        content=error_body(ConflictError.kind, "The request conflicts with a concurrent change"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingSystemError, _booking_system_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(OperationalError, _database_error_handler)
    app.add_exception_handler(DBAPIError, _database_error_handler)
