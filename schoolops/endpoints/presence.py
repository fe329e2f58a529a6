"""Presence endpoints."""

from fastapi import APIRouter, Depends

from schoolops.schemas.events import PresenceResponse, PresenceUpdateRequest
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster
from schoolops.services.event_publisher import EventPublisher
from schoolops.services.presence import PresenceTracker, get_presence_tracker

router = APIRouter()


@router.get("", response_model=list[PresenceResponse])
async def list_presence(tracker: PresenceTracker = Depends(get_presence_tracker)):
    """Users currently active or away."""
    return [
        PresenceResponse(
            user_id=p.user_id,
            user_name=p.user_name,
            status=p.status,
            last_activity=p.last_activity,
            current_activity=p.current_activity,
        )
        for p in tracker.active_users()
    ]


@router.post("", response_model=PresenceResponse)
async def update_presence(
    data: PresenceUpdateRequest,
    tracker: PresenceTracker = Depends(get_presence_tracker),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Record a presence ping and broadcast it."""
    presence = tracker.update(
        EventPublisher(broadcaster),
        data.user_id,
        data.user_name,
        status=data.status,
        activity_id=data.activity_id,
    )
    return PresenceResponse(
        user_id=presence.user_id,
        user_name=presence.user_name,
        status=presence.status,
        last_activity=presence.last_activity,
        current_activity=presence.current_activity,
    )
