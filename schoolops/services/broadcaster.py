"""Server-Sent Events broadcaster.

One ``EventBroadcaster`` is created per process in the application lifespan
and handed to request handlers through ``get_broadcaster``. All table
mutations happen on the event loop, so no locking is needed; iteration always
runs over a snapshot of the connection ids.
"""

import asyncio
import secrets
import time
from typing import AsyncIterator, Optional

import structlog
from fastapi import Request

from schoolops.config.settings import settings
from schoolops.schemas.events import EventType, ServerEvent

logger = structlog.get_logger()

_CLOSED = object()


def new_connection_id() -> str:
    """Connection ids encode their creation time: conn-<epoch-ms>-<random>."""
    return f"conn-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class ConnectionClosedError(Exception):
    """Push attempted on a closed connection."""


class SSEConnection:
    """Push handle for one browser stream, backed by a bounded queue."""

    def __init__(self, connection_id: str, max_queue: int = 100):
        self.connection_id = connection_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.created_at = time.monotonic()
        self.last_activity = self.created_at
        self.closed = False

    def push(self, frame: str) -> None:
        """Enqueue a frame; raises if closed or the client is not keeping up."""
        if self.closed:
            raise ConnectionClosedError(self.connection_id)
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull as e:
            raise ConnectionClosedError(f"{self.connection_id} queue full") from e

    def close(self) -> None:
        if self.closed:
            raise ConnectionClosedError(self.connection_id)
        self.closed = True
        try:
            self.queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Drop the oldest frame so the reader sees the sentinel
            self.queue.get_nowait()
            self.queue.put_nowait(_CLOSED)

    def touch(self) -> None:
        self.last_activity = time.monotonic()


class EventBroadcaster:
    """Fan-out of ServerEvents to every registered SSE connection."""

    def __init__(
        self,
        heartbeat_interval: float = settings.SSE_HEARTBEAT_INTERVAL,
        sweep_interval: float = settings.SSE_SWEEP_INTERVAL,
        stale_timeout: float = settings.SSE_STALE_TIMEOUT,
        queue_size: int = settings.SSE_QUEUE_SIZE,
    ):
        self.heartbeat_interval = heartbeat_interval
        self.sweep_interval = sweep_interval
        self.stale_timeout = stale_timeout
        self.queue_size = queue_size
        self.connections: dict[str, SSEConnection] = {}
        self._tasks: list[asyncio.Task] = []

    def __len__(self) -> int:
        return len(self.connections)

    # Lifecycle

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._heartbeat_loop(), name="sse-heartbeat"),
            asyncio.create_task(self._sweep_loop(), name="sse-sweep"),
        ]
        logger.info(
            "Event broadcaster started",
            heartbeat_interval=self.heartbeat_interval,
            stale_timeout=self.stale_timeout,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        for connection_id in list(self.connections):
            self.unregister(connection_id)
        logger.info("Event broadcaster stopped")

    # Connection table

    def open_connection(self) -> SSEConnection:
        """Create, register and return a new connection."""
        connection = SSEConnection(new_connection_id(), max_queue=self.queue_size)
        self.register(connection.connection_id, connection)
        return connection

    def register(self, connection_id: str, connection: SSEConnection) -> None:
        self.connections[connection_id] = connection
        logger.info(
            "SSE connection registered",
            connection_id=connection_id,
            total_connections=len(self.connections),
        )
        event = ServerEvent(
            type=EventType.HEARTBEAT,
            data={"status": "connected", "connectionId": connection_id},
        )
        try:
            connection.push(event.to_frame())
        except Exception as e:
            logger.warning("Initial heartbeat failed", connection_id=connection_id, error=str(e))
            self.unregister(connection_id)

    def unregister(self, connection_id: str) -> bool:
        """Remove a connection; unknown or already-closed ids are ignored."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return False
        try:
            connection.close()
        except ConnectionClosedError:
            pass
        logger.info(
            "SSE connection unregistered",
            connection_id=connection_id,
            total_connections=len(self.connections),
        )
        return True

    # Delivery

    def _deliver(self, frame: str, connection_ids: list[str]) -> dict[str, int]:
        delivered = failed = 0
        for connection_id in connection_ids:
            connection = self.connections.get(connection_id)
            if connection is None:
                continue
            try:
                connection.push(frame)
                delivered += 1
            except Exception as e:
                failed += 1
                logger.warning("SSE push failed", connection_id=connection_id, error=str(e))
                self.unregister(connection_id)
        return {"delivered": delivered, "failed": failed}

    def broadcast(self, event: ServerEvent) -> dict[str, int]:
        """Push an event to every connection; returns delivery counts."""
        counts = self._deliver(event.to_frame(), list(self.connections))
        logger.debug("Event broadcast", event_type=event.type.value, **counts)
        return counts

    def send_heartbeats(self) -> dict[str, int]:
        """One heartbeat per connection, each timestamped independently."""
        counts = {"delivered": 0, "failed": 0}
        for connection_id in list(self.connections):
            event = ServerEvent(type=EventType.HEARTBEAT, data={"connectionId": connection_id})
            result = self._deliver(event.to_frame(), [connection_id])
            counts["delivered"] += result["delivered"]
            counts["failed"] += result["failed"]
        return counts

    def sweep_stale(self, now: Optional[float] = None) -> list[str]:
        """Unregister connections idle longer than the stale timeout."""
        now = time.monotonic() if now is None else now
        stale = [
            connection_id
            for connection_id, connection in list(self.connections.items())
            if now - connection.last_activity > self.stale_timeout
        ]
        for connection_id in stale:
            self.unregister(connection_id)
        if stale:
            logger.info("Stale SSE connections removed", count=len(stale))
        return stale

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self.send_heartbeats()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep_stale()

    # Streaming

    async def stream(self, connection_id: str) -> AsyncIterator[str]:
        """Yield frames for one connection until it is closed.

        The connection is unregistered when the consumer stops, including on
        client disconnect (generator close / cancellation).
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            return
        try:
            while True:
                frame = await connection.queue.get()
                if frame is _CLOSED:
                    break
                connection.touch()
                yield frame
        finally:
            self.unregister(connection_id)

    def stats(self) -> dict:
        now = time.monotonic()
        return {
            "total_connections": len(self.connections),
            "connections": [
                {
                    "connection_id": connection_id,
                    "age_seconds": round(now - connection.created_at, 3),
                    "idle_seconds": round(now - connection.last_activity, 3),
                }
                for connection_id, connection in list(self.connections.items())
            ],
        }


def get_broadcaster(request: Request) -> EventBroadcaster:
    """FastAPI dependency returning the process broadcaster."""
    return request.app.state.broadcaster
