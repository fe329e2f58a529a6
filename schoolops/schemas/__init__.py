"""Pydantic schemas for API request/response validation.

All schemas use CamelCase for JSON field names (via alias_generator).
"""

from .base import CamelModel, PaginatedResponse, PaginationMeta, ErrorResponse

# Re-export all schemas
from .users import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserDeleteResponse,
)
from .categories import (
    CategoryCreate,
    CategoryResponse,
    CategoryDeleteResponse,
)
from .activities import (
    ActivityCreate,
    ActivityFullUpdate,
    ActivityStatusUpdate,
    ActivityChangeRequest,
    ActivityResponse,
    ActivityListItem,
    ActivityUpdateCreate,
    ActivityUpdateItem,
)
from .assignments import (
    AssignmentCreate,
    AssignmentUpdate,
    AssignmentResponse,
)
from .llm_configurations import (
    LLMConfigurationCreate,
    LLMConfigurationUpdate,
    LLMConfigurationResponse,
    LLMConfigurationTestResponse,
)
from .ai import (
    ParseRequest,
    ParsedActivity,
    ChatMessage,
    ChatRequest,
    SummaryResponse,
    ProviderStatus,
)
from .whatsapp import WhatsAppMessageResponse
from .events import (
    EventType,
    ServerEvent,
    PresenceUpdateRequest,
    PresenceResponse,
    ConnectionStats,
)

__all__ = [
    # Base
    "CamelModel",
    "PaginatedResponse",
    "PaginationMeta",
    "ErrorResponse",
    # Users
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "UserDeleteResponse",
    # Categories
    "CategoryCreate",
    "CategoryResponse",
    "CategoryDeleteResponse",
    # Activities
    "ActivityCreate",
    "ActivityFullUpdate",
    "ActivityStatusUpdate",
    "ActivityChangeRequest",
    "ActivityResponse",
    "ActivityListItem",
    "ActivityUpdateCreate",
    "ActivityUpdateItem",
    # Assignments
    "AssignmentCreate",
    "AssignmentUpdate",
    "AssignmentResponse",
    # LLM configurations
    "LLMConfigurationCreate",
    "LLMConfigurationUpdate",
    "LLMConfigurationResponse",
    "LLMConfigurationTestResponse",
    # AI
    "ParseRequest",
    "ParsedActivity",
    "ChatMessage",
    "ChatRequest",
    "SummaryResponse",
    "ProviderStatus",
    # WhatsApp
    "WhatsAppMessageResponse",
    # Events
    "EventType",
    "ServerEvent",
    "PresenceUpdateRequest",
    "PresenceResponse",
    "ConnectionStats",
]
