"""In-memory user presence, published over SSE."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import Request

from schoolops.services.event_publisher import EventPublisher

logger = structlog.get_logger()

AWAY_AFTER = timedelta(minutes=5)


@dataclass
class UserPresence:
    user_id: str
    user_name: str
    status: str
    last_activity: datetime
    current_activity: Optional[str] = None


class PresenceTracker:
    """Who is looking at the dashboard, keyed by user id."""

    def __init__(self, away_after: timedelta = AWAY_AFTER):
        self.away_after = away_after
        self.presence: dict[str, UserPresence] = {}

    def update(
        self,
        publisher: EventPublisher,
        user_id: str,
        user_name: str,
        status: str = "active",
        activity_id: Optional[str] = None,
    ) -> UserPresence:
        now = datetime.now(timezone.utc)
        presence = UserPresence(
            user_id=user_id,
            user_name=user_name,
            status=status,
            last_activity=now,
            current_activity=activity_id,
        )
        if status == "offline":
            self.presence.pop(user_id, None)
        else:
            self.presence[user_id] = presence

        publisher.presence_updated(
            user_id,
            is_online=status != "offline",
            last_seen=now.isoformat(),
            userName=user_name,
            status=status,
            currentActivity=activity_id,
        )
        logger.info("User presence updated", user_id=user_id, status=status)
        return presence

    def viewers(self, activity_id: str) -> list[UserPresence]:
        return [p for p in self.presence.values() if p.current_activity == activity_id]

    def mark_idle(self, now: Optional[datetime] = None) -> list[str]:
        """Flag users with no recent ping as away."""
        now = now or datetime.now(timezone.utc)
        changed = []
        for presence in list(self.presence.values()):
            if presence.status == "active" and now - presence.last_activity > self.away_after:
                presence.status = "away"
                changed.append(presence.user_id)
        return changed

    def active_users(self) -> list[UserPresence]:
        self.mark_idle()
        return list(self.presence.values())


def get_presence_tracker(request: Request) -> PresenceTracker:
    """FastAPI dependency returning the process presence tracker."""
    return request.app.state.presence
