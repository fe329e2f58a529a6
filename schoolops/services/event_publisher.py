"""Builds domain events from rows and hands them to the broadcaster.

Publishing is best-effort: a failure is logged and never reaches the request
that triggered it. Handlers call these after a successful commit.
"""

from typing import Any, Optional

import structlog

from schoolops.models import Activity, ActivityAssignment
from schoolops.schemas.events import EventType, ServerEvent
from schoolops.services.broadcaster import EventBroadcaster

logger = structlog.get_logger()


def _activity_payload(activity: Activity) -> dict[str, Any]:
    return {
        "id": activity.id,
        "category": activity.category.name if activity.category else None,
        "subcategory": activity.subcategory,
        "location": activity.location,
        "status": activity.status,
        "reporter": activity.reporter.name if activity.reporter else None,
        "assignedTo": activity.assigned_to.name if activity.assigned_to else None,
        "timestamp": activity.timestamp.isoformat() if activity.timestamp else None,
    }


class EventPublisher:
    """Thin domain layer over EventBroadcaster."""

    def __init__(self, broadcaster: EventBroadcaster):
        self.broadcaster = broadcaster

    def publish(self, event_type: EventType, data: dict[str, Any], user_id: Optional[str] = None) -> dict[str, int]:
        try:
            return self.broadcaster.broadcast(ServerEvent(type=event_type, data=data, user_id=user_id))
        except Exception as e:
            logger.error("Event publish failed", event_type=event_type.value, error=str(e))
            return {"delivered": 0, "failed": 0}

    def activity_created(self, activity: Activity) -> dict[str, int]:
        try:
            data = _activity_payload(activity)
        except Exception as e:
            logger.error("Failed to build activity_created event", activity_id=activity.id, error=str(e))
            return {"delivered": 0, "failed": 0}
        return self.publish(EventType.ACTIVITY_CREATED, data)

    def activity_updated(self, activity: Activity, update_type: str = "general") -> dict[str, int]:
        try:
            data = _activity_payload(activity)
            data["updateType"] = update_type
            data["resolutionNotes"] = activity.resolution_notes
            latest = activity.updates[-1] if activity.updates else None
            if latest is not None:
                data["latestUpdate"] = {
                    "notes": latest.notes,
                    "authorId": latest.author_id,
                    "updateType": latest.update_type,
                }
        except Exception as e:
            logger.error("Failed to build activity_updated event", activity_id=activity.id, error=str(e))
            return {"delivered": 0, "failed": 0}
        return self.publish(EventType.ACTIVITY_UPDATED, data)

    def assignment_changed(
        self,
        activity_id: str,
        action: str,
        assignment: Optional[ActivityAssignment] = None,
        assignment_id: Optional[str] = None,
    ) -> dict[str, int]:
        data: dict[str, Any] = {"activityId": activity_id, "action": action}
        try:
            if assignment is not None:
                data.update(
                    {
                        "assignmentId": assignment.id,
                        "userId": assignment.user_id,
                        "userName": assignment.assigned_user.name if assignment.assigned_user else None,
                        "assignmentType": assignment.assignment_type,
                        "status": assignment.status,
                    }
                )
            elif assignment_id is not None:
                data["assignmentId"] = assignment_id
        except Exception as e:
            logger.error("Failed to build assignment_changed event", activity_id=activity_id, error=str(e))
            return {"delivered": 0, "failed": 0}
        return self.publish(EventType.ASSIGNMENT_CHANGED, data)

    def presence_updated(self, user_id: str, is_online: bool, last_seen: str, **extra: Any) -> dict[str, int]:
        data = {"userId": user_id, "isOnline": is_online, "lastSeen": last_seen, **extra}
        return self.publish(EventType.PRESENCE_UPDATED, data, user_id=user_id)
