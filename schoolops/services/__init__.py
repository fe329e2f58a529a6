"""Business logic services for the School Operations Dashboard API."""

from .activity_status import apply_status_update, StatusChange
from .ai_factory import (
    Available,
    Unavailable,
    NoProvidersConfigured,
    create_provider,
    first_available,
    resolve_provider,
    resolve_provider_from_config,
)
from .background import spawn_detached
from .broadcaster import EventBroadcaster, SSEConnection, get_broadcaster

__all__ = [
    "apply_status_update",
    "StatusChange",
    "Available",
    "Unavailable",
    "NoProvidersConfigured",
    "create_provider",
    "first_available",
    "resolve_provider",
    "resolve_provider_from_config",
    "spawn_detached",
    "EventBroadcaster",
    "SSEConnection",
    "get_broadcaster",
]
