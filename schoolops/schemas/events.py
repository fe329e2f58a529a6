"""Pydantic schemas for real-time events."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from .base import CamelModel


class EventType(str, Enum):
    """Kinds of events pushed over the SSE stream."""

    ACTIVITY_CREATED = "activity_created"
    ACTIVITY_UPDATED = "activity_updated"
    ASSIGNMENT_CHANGED = "assignment_changed"
    PRESENCE_UPDATED = "presence_updated"
    HEARTBEAT = "heartbeat"


class ServerEvent(CamelModel):
    """
    Event envelope sent to browsers.

    Wire format: {"type": ..., "data": {...}, "timestamp": "...", "userId": ...}
    """

    type: EventType
    data: dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None

    def to_frame(self) -> str:
        """Render as one SSE frame."""
        payload = self.model_dump_json(by_alias=True, exclude_none=True)
        return f"data: {payload}\n\n"


class PresenceUpdateRequest(CamelModel):
    """Presence ping from a browser."""

    user_id: str = Field(min_length=1)
    user_name: str = Field(min_length=1, max_length=100)
    status: str = Field(default="active", pattern=r"^(active|away|offline)$")
    activity_id: Optional[str] = None


class PresenceResponse(CamelModel):
    """Current presence of a user."""

    user_id: str
    user_name: str
    status: str
    last_activity: datetime
    current_activity: Optional[str] = None


class ConnectionInfo(CamelModel):
    """One live SSE connection."""

    connection_id: str
    age_seconds: float
    idle_seconds: float


class ConnectionStats(CamelModel):
    """SSE connection statistics."""

    total_connections: int
    connections: list[ConnectionInfo]
