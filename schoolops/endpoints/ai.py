"""AI endpoints: provider status, message parsing and dashboard chat."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from schoolops.config.database import get_db, seed_system_categories
from schoolops.models import Category
from schoolops.schemas.ai import (
    ChatRequest,
    ParsedActivity,
    ParseRequest,
    ProviderStatus,
    SummaryResponse,
)
from schoolops.services import chat
from schoolops.services.ai_factory import Available, provider_statuses, resolve_provider_from_config
from schoolops.services.message_parser import parse_message

logger = structlog.get_logger()
router = APIRouter()

INITIAL_SUMMARY = "INITIAL_SUMMARY"


@router.get("/providers", response_model=list[ProviderStatus])
async def list_providers():
    """Availability of each AI provider in priority order."""
    return [ProviderStatus(**status) for status in provider_statuses()]


@router.post("/parse", response_model=ParsedActivity)
async def parse(
    data: ParseRequest,
    db: Session = Depends(get_db),
):
    """Turn a free-form message into an activity draft."""
    categories = db.query(Category).order_by(Category.name).all()
    if not categories:
        seed_system_categories(db)
        categories = db.query(Category).all()

    resolution = resolve_provider_from_config(db, data.provider)
    parsed = await parse_message(data.message, categories, resolution)

    logger.info(
        "Message parsed",
        provider=parsed.provider,
        fallback_used=parsed.fallback_used,
        category_id=parsed.category_id,
    )
    return ParsedActivity(
        category_id=parsed.category_id,
        subcategory=parsed.subcategory,
        location=parsed.location,
        notes=parsed.notes,
        provider=parsed.provider,
        fallback_used=parsed.fallback_used,
    )


@router.post("/chat", response_model=None)
async def chat_endpoint(
    data: ChatRequest,
    db: Session = Depends(get_db),
    provider: Optional[str] = Query(None),
):
    """
    Dashboard assistant.

    message == INITIAL_SUMMARY returns a JSON analysis with suggestions and
    the seed history; any other message streams a plain-text answer.
    """
    resolution = resolve_provider_from_config(db, data.provider or provider)

    if data.message == INITIAL_SUMMARY:
        records = chat.records_from_context(data.context) or chat.records_from_db(db)
        summary = await chat.generate_summary(resolution, records)
        logger.info("Initial summary generated", provider=summary["provider"], activities=len(records))
        return SummaryResponse(**summary)

    history = [m.model_dump() for m in data.history]
    logger.info(
        "Chat message",
        provider=resolution.provider_name if isinstance(resolution, Available) else None,
        history_length=len(history),
    )
    return StreamingResponse(
        chat.stream_chat(resolution, history, data.message),
        media_type="text/plain; charset=utf-8",
    )
