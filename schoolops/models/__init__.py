"""SQLAlchemy ORM models for the School Operations Dashboard.

All models are imported here to ensure they're registered with Base.metadata
before any database operations.
"""

# Import base first
from schoolops.config.database import Base

# Core models
from .users import User, VALID_ROLES
from .categories import Category
from .activities import Activity, ActivityStatus
from .activity_updates import ActivityUpdate, VALID_UPDATE_TYPES
from .assignments import ActivityAssignment, VALID_ASSIGNMENT_TYPES, VALID_ASSIGNMENT_STATUSES

# Messaging
from .whatsapp_messages import WhatsAppMessage

# AI configuration
from .llm_configurations import LLMConfiguration, ApiKey, SUPPORTED_PROVIDERS

__all__ = [
    "Base",
    # Core
    "User",
    "VALID_ROLES",
    "Category",
    "Activity",
    "ActivityStatus",
    "ActivityUpdate",
    "VALID_UPDATE_TYPES",
    "ActivityAssignment",
    "VALID_ASSIGNMENT_TYPES",
    "VALID_ASSIGNMENT_STATUSES",
    # Messaging
    "WhatsAppMessage",
    # AI configuration
    "LLMConfiguration",
    "ApiKey",
    "SUPPORTED_PROVIDERS",
]
