"""Health probes.

The service counts as healthy when the database answers. AI providers and
Twilio are reported but optional: every AI feature has a keyword/template
fallback and notifications are best-effort.
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from schoolops.config.database import get_db
from schoolops.config.settings import settings
from schoolops.services.ai_factory import provider_statuses
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster

logger = structlog.get_logger()
router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    database: str
    ai_providers: list[str]
    sse_connections: int


class DetailedHealthResponse(HealthResponse):
    components: dict


def ping_database(db: Session) -> str | None:
    """None when the database answers, else the error text."""
    try:
        db.execute(text("SELECT 1")).fetchone()
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return str(e)
    return None


def _redacted_database_url() -> str:
    url = settings.DATABASE_URL
    return url.rsplit("@", 1)[-1] if "@" in url else url.split(":", 1)[0]


def _summary(db_error: str | None, providers: list[dict], broadcaster: EventBroadcaster) -> dict:
    return {
        "status": "unhealthy" if db_error else "healthy",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "disconnected" if db_error else "connected",
        "ai_providers": [p["name"] for p in providers if p["available"]],
        "sse_connections": len(broadcaster),
    }


@router.get("", response_model=HealthResponse)
@router.get("/", response_model=HealthResponse, include_in_schema=False)
async def health_check(
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> HealthResponse:
    """Database status, usable AI providers and live SSE connections."""
    return HealthResponse(**_summary(ping_database(db), provider_statuses(), broadcaster))


@router.get("/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    db: Session = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> DetailedHealthResponse:
    db_error = ping_database(db)
    providers = provider_statuses()

    return DetailedHealthResponse(
        **_summary(db_error, providers, broadcaster),
        components={
            "database": {
                "status": "disconnected" if db_error else "connected",
                "error": db_error,
                "url": _redacted_database_url(),
            },
            "ai": {
                "providers": providers,
                "priority": settings.AI_PROVIDER_PRIORITY,
            },
            "twilio": {
                "configured": bool(
                    settings.TWILIO_ACCOUNT_SID
                    and settings.TWILIO_AUTH_TOKEN
                    and settings.TWILIO_WHATSAPP_NUMBER
                ),
                "notifications_enabled": settings.NOTIFICATIONS_ENABLED,
            },
            "sse": broadcaster.stats(),
        },
    )


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness probe: 503 until the database answers."""
    if ping_database(db) is not None:
        return JSONResponse(status_code=503, content={"ready": False, "reason": "Database not connected"})
    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    return {"alive": True}
