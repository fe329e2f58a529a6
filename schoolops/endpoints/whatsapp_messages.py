"""Stored WhatsApp message endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolops.config.database import get_db
from schoolops.models import WhatsAppMessage
from schoolops.schemas.base import PaginatedResponse, paginate
from schoolops.schemas.whatsapp import WhatsAppMessageResponse

router = APIRouter()


@router.get("", response_model=PaginatedResponse[WhatsAppMessageResponse])
async def list_messages(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    direction: Optional[str] = Query(None, pattern="^(inbound|outbound)$"),
    processed: Optional[bool] = Query(None),
    from_number: Optional[str] = Query(None),
):
    """List stored messages, newest first."""
    query = db.query(WhatsAppMessage)

    if direction:
        query = query.filter(WhatsAppMessage.direction == direction)
    if processed is not None:
        query = query.filter(WhatsAppMessage.processed == processed)
    if from_number:
        query = query.filter(WhatsAppMessage.from_number == from_number)

    messages, meta = paginate(query.order_by(WhatsAppMessage.timestamp.desc()), page, limit)
    return PaginatedResponse(
        data=[WhatsAppMessageResponse.model_validate(m) for m in messages],
        meta=meta,
    )
