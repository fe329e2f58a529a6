"""Structured logging setup and per-request log context."""

import logging
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Probes hit these every few seconds; they only get logged when they fail
QUIET_PATHS = {"/health", "/api/v1/health/live", "/api/v1/health/ready"}

# Query parameters carrying phone numbers
PHONE_PARAMS = {"from_number", "phone", "phone_number"}


def mask_phone(phone: str | None) -> str:
    """Mask a phone number for logs: first four characters then ****."""
    if not phone:
        return "****"
    return f"{phone[:4]}****"


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog once per process.

    JSON lines for deployed environments, a coloured console renderer when
    `json_logs` is off (local development).
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _safe_query(request: Request) -> dict[str, str]:
    return {
        key: mask_phone(value) if key in PHONE_PARAMS else value
        for key, value in request.query_params.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the log context and logs each request.

    A caller-supplied X-Request-ID is reused so dashboard and API logs line
    up. For the event stream only the opening of the stream is logged; its
    duration is the lifetime of the browser tab.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        path = request.url.path
        quiet = path in QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            logger.info(
                "Request started",
                method=request.method,
                path=path,
                query=_safe_query(request),
                client=request.client.host if request.client else None,
            )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if response.headers.get("content-type", "").startswith("text/event-stream"):
            logger.info("Event stream opened", path=path)
            return response

        if quiet and response.status_code < 400:
            return response

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        log = logger.info if response.status_code < 400 else logger.warning
        log(
            "Request completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=elapsed_ms,
        )
        return response
