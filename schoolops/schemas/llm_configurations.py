"""Pydantic schemas for LLM configuration endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from .base import CamelModel

ProviderName = Literal["claude", "gemini", "deepseek", "kimi"]


class LLMConfigurationCreate(CamelModel):
    """Schema for creating a configuration (API key is encrypted on save)."""

    provider: ProviderName
    name: str = Field(min_length=1, max_length=100)
    model: Optional[str] = None
    base_url: Optional[str] = None
    is_active: bool = True
    is_default: bool = False
    configuration: dict[str, Any] = {}
    api_key: str = Field(min_length=1)


class LLMConfigurationUpdate(CamelModel):
    """Schema for updating a configuration (all fields optional)."""

    provider: Optional[ProviderName] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = None
    base_url: Optional[str] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    configuration: Optional[dict[str, Any]] = None
    api_key: Optional[str] = Field(default=None, min_length=1)


class LLMConfigurationResponse(CamelModel):
    """Schema for configuration response (no secrets returned)."""

    id: str
    provider: str
    name: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    is_active: bool
    is_default: bool
    configuration: dict[str, Any] = {}
    api_key_id: Optional[str] = None
    has_api_key: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class LLMConfigurationTestResponse(CamelModel):
    """Response for a configuration connectivity test."""

    success: bool
    message: str
    provider: str
    response_preview: Optional[str] = None
