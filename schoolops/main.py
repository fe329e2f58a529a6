"""
School Operations Dashboard API.

Run with: uvicorn schoolops.main:app --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolops.config.database import init_db
from schoolops.config.settings import settings
from schoolops.endpoints import api_router
from schoolops.middleware.error_handler import setup_exception_handlers
from schoolops.middleware.logging import LoggingMiddleware, configure_logging
from schoolops.services.background import drain, pending_count
from schoolops.services.broadcaster import EventBroadcaster
from schoolops.services.encryption import validate_encryption_key
from schoolops.services.presence import PresenceTracker

configure_logging(settings.LOG_LEVEL, json_logs=settings.ENVIRONMENT != "development" or not settings.DEBUG)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Process lifecycle: schema, broadcaster loops, detached task drain."""
    logger.info(
        "Starting School Operations Dashboard API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    try:
        validate_encryption_key()
    except Exception as e:
        logger.critical("Encryption key validation failed", error=str(e))
        raise

    # Tables and the Unplanned category; create_all skips existing tables
    try:
        init_db()
    except Exception as e:
        logger.error("Database initialization failed", error=str(e))

    broadcaster = EventBroadcaster()
    app.state.broadcaster = broadcaster
    app.state.presence = PresenceTracker()
    await broadcaster.start()

    yield

    logger.info("Shutting down", open_streams=len(broadcaster), pending_tasks=pending_count())
    await broadcaster.stop()
    await drain()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Incident and task tracking for school staff, with WhatsApp intake and live updates",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        openapi_url="/api/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    setup_exception_handlers(app)

    # Added last, so outermost
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", include_in_schema=False)
    async def root_health():
        """Load balancer probe; no dependencies touched."""
        return {"status": "ok", "version": settings.APP_VERSION}

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/api/docs" if settings.DEBUG else None,
            "events": "/api/v1/events",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "schoolops.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
