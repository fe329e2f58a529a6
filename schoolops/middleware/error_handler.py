"""API error types and the global exception handlers that render them.

Every error response has the same envelope:

    {"error": {"code": "NOT_FOUND", "message": "Activity not found", "details": {...}}}
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from schoolops.models.base import is_cuid

logger = structlog.get_logger()


class APIError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    code = "API_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class BadRequestError(APIError):
    code = "BAD_REQUEST"


class InvalidIdentifierError(APIError):
    """Path identifier is not a well-formed id."""

    code = "INVALID_ID"

    def __init__(self, field: str, value: str):
        super().__init__(f"Invalid {field} format", {"field": field, "value": value})


class NotFoundError(APIError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: str, field: Optional[str] = None):
        details = {"resource": resource, "id": identifier}
        if field:
            details["field"] = field
        super().__init__(f"{resource} not found", details)


class ForbiddenError(APIError):
    """The resource exists but this operation on it is not allowed."""

    code = "FORBIDDEN"
    status_code = 403


class ConflictError(APIError):
    code = "CONFLICT"
    status_code = 409


def require_id(value: str, field: str = "id", allow: tuple[str, ...] = ()) -> str:
    """Return `value` if it is a CUID (or explicitly allowed), else raise INVALID_ID."""
    if value in allow or is_cuid(value):
        return value
    raise InvalidIdentifierError(field, value)


def error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or {}}},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        logger.warning("API error", code=exc.code, message=exc.message, path=request.url.path)
        return error_response(exc.status_code, exc.code, exc.message, exc.details)

    # Request bodies fail as RequestValidationError; nested payloads validated
    # inside handlers (PUT /activities) fail as plain pydantic ValidationError.
    @app.exception_handler(RequestValidationError)
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = [{"loc": e.get("loc"), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc") or ())
        message = first.get("msg", "Validation error")

        logger.warning("Validation error", field=field, message=message, path=request.url.path)
        return error_response(
            422,
            "VALIDATION_ERROR",
            message,
            {"field": field, "errors": jsonable_encoder(errors)},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        # Races past the explicit duplicate checks end up here
        logger.warning("Integrity error", error=str(exc.orig), path=request.url.path)
        return error_response(409, "CONFLICT", "Resource conflicts with existing data")

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error", error=str(exc), path=request.url.path)
        return error_response(500, "DATABASE_ERROR", "A database error occurred")

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")
