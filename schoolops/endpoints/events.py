"""Server-Sent Events stream and connection statistics."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from schoolops.schemas.events import ConnectionStats
from schoolops.services.broadcaster import EventBroadcaster, get_broadcaster

logger = structlog.get_logger()
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("")
async def stream_events(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    """
    Open an event stream.

    The first frame is a heartbeat carrying the connection id; the
    connection is dropped when the client disconnects.
    """
    connection = broadcaster.open_connection()
    return StreamingResponse(
        broadcaster.stream(connection.connection_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/stats", response_model=ConnectionStats)
async def event_stats(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    """Live connection count and per-connection ages."""
    return ConnectionStats(**broadcaster.stats())
