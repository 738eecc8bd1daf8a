"""WebSocket connection manager for publishing report lifecycle events."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fastapi import WebSocket

from app.errors import Forbidden, Unauthorized
from app.websocket.schemas import ChannelKind, EventMessage, Topic

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


def channel_for(topic: Topic | str, payload: dict[str, Any]) -> str | None:
    """
    Pick the delivery channel for an event.

    Report-level topics are public (map views need them) and return None,
    meaning every connection receives them. Stats topics are private: submitter
    stats go only to that submitter's channel, operator stats only to `admin`.
    """
    topic = Topic(topic)
    if topic == Topic.USER_STATS_UPDATE:
        return user_channel(str(payload["user_id"]))
    if topic == Topic.ADMIN_STATS_UPDATE:
        return ADMIN_CHANNEL
    return None


@dataclass
class ClientSubscription:
    """Tracks a client's identity and joined channels."""

    websocket: WebSocket
    user_id: str | None = None
    is_operator: bool = False
    channels: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def matches(self, channel: str | None) -> bool:
        """Check if an event on `channel` should be delivered to this client."""
        return channel is None or channel in self.channels

    def resolve_channel(self, kind: ChannelKind) -> str:
        """Map a join request to a concrete channel, enforcing access."""
        if kind == ChannelKind.ADMIN:
            if not self.is_operator:
                raise Forbidden("Only operators may join the admin channel")
            return ADMIN_CHANNEL
        if self.user_id is None:
            raise Unauthorized("Authenticate to join a user channel")
        return user_channel(self.user_id)


class ConnectionManager:
    """
    Manages WebSocket connections and publishes events.

    Events for the same report are published in commit order because the
    report service publishes while holding that report's lock, and each publish
    completes all its sends before returning.

    Designed for single-instance deployment; can be extended with Redis pub/sub
    for multi-instance horizontal scaling.
    """

    def __init__(self):
        self._connections: dict[WebSocket, ClientSubscription] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        """Number of active connections."""
        return len(self._connections)

    async def connect(
        self,
        websocket: WebSocket,
        user_id: str | None = None,
        is_operator: bool = False,
    ) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = ClientSubscription(
                websocket=websocket, user_id=user_id, is_operator=is_operator
            )
        logger.info(f"WebSocket connected. Total connections: {self.connection_count}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        async with self._lock:
            if websocket in self._connections:
                del self._connections[websocket]
        logger.info(f"WebSocket disconnected. Total connections: {self.connection_count}")

    async def join(self, websocket: WebSocket, kind: ChannelKind) -> str:
        """Add a channel to a client's subscription and return its name."""
        async with self._lock:
            sub = self._connections.get(websocket)
            if sub is None:
                raise Unauthorized("WebSocket is not connected")
            channel = sub.resolve_channel(kind)
            sub.channels.add(channel)
        logger.debug(f"Client joined channel {channel}")
        return channel

    async def leave(self, websocket: WebSocket, kind: ChannelKind) -> str | None:
        """Remove a channel from a client's subscription."""
        async with self._lock:
            sub = self._connections.get(websocket)
            if sub is None:
                return None
            channel = sub.resolve_channel(kind)
            sub.channels.discard(channel)
        return channel

    async def publish(self, topic: Topic | str, payload: dict[str, Any]) -> int:
        """
        Deliver an event to every connection subscribed to its channel.

        Best effort and at most once: clients that are not connected miss the
        event. Returns the number of clients the event was sent to.
        """
        topic = Topic(topic)
        channel = channel_for(topic, payload)

        async with self._lock:
            if not self._connections:
                return 0

            message = EventMessage(topic=topic, data=payload, timestamp=datetime.now(UTC))
            tasks = [
                self._send_safe(websocket, message)
                for websocket, subscription in list(self._connections.items())
                if subscription.matches(channel)
            ]

            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
                logger.info(f"Published {topic} to {len(tasks)} subscribers")
            return len(tasks)

    async def _send_safe(self, websocket: WebSocket, message: EventMessage) -> None:
        """Send message to websocket, handling errors gracefully."""
        try:
            await websocket.send_json(message.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")
            # Schedule disconnect (don't do it here to avoid deadlock)
            asyncio.create_task(self.disconnect(websocket))


# Global singleton instance
manager = ConnectionManager()
