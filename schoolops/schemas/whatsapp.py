"""Pydantic schemas for WhatsApp message endpoints."""

from datetime import datetime
from typing import Optional

from .base import CamelModel


class WhatsAppMessageResponse(CamelModel):
    """Stored WhatsApp message."""

    id: str
    wa_id: Optional[str] = None
    from_number: str
    to_number: Optional[str] = None
    message_type: str
    content: str
    profile_name: Optional[str] = None
    timestamp: datetime
    direction: str
    status: str
    processed: bool
    related_activity_id: Optional[str] = None
