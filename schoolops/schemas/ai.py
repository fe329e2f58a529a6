"""Pydantic schemas for AI endpoints."""

from typing import Any, Literal, Optional

from pydantic import Field

from .base import CamelModel


class ParseRequest(CamelModel):
    """Free-form message to turn into an activity draft."""

    message: str = Field(min_length=1, max_length=2000)
    provider: Optional[str] = None


class ParsedActivity(CamelModel):
    """Structured activity draft."""

    category_id: str
    subcategory: str
    location: str
    notes: str
    provider: str
    fallback_used: bool = False


class ChatMessage(CamelModel):
    """One turn of conversation history."""

    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(CamelModel):
    """Chat request; message INITIAL_SUMMARY asks for the dashboard analysis."""

    message: str = Field(min_length=1)
    history: list[ChatMessage] = []
    context: dict[str, Any] = {}
    provider: Optional[str] = None


class SummaryResponse(CamelModel):
    """Initial analysis of the activity dataset."""

    analysis: str
    suggestions: list[str]
    history: list[ChatMessage]
    provider: str
    fallback_used: bool = False


class ProviderStatus(CamelModel):
    """Availability of one AI provider."""

    name: str
    display_name: str
    available: bool
    reason: Optional[str] = None
