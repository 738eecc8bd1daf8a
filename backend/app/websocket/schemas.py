"""WebSocket message schemas."""

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel


class Topic(StrEnum):
    """Real-time event topics."""

    REPORT_NEW = "report:new"
    REPORT_STATUS = "report:status"
    STATUS_UPDATE = "status:update"
    CONTRACTOR_ASSIGN = "contractor:assign"
    USER_STATS_UPDATE = "user:stats:update"
    ADMIN_STATS_UPDATE = "admin:stats:update"


class ChannelKind(StrEnum):
    ADMIN = "admin"
    USER = "user"


class JoinMessage(BaseModel):
    """Client request to join a channel.

    `user` always means the caller's own channel; there is no way to join
    another user's channel.
    """

    type: Literal["join"] = "join"
    channel: ChannelKind


class LeaveMessage(BaseModel):
    type: Literal["leave"] = "leave"
    channel: ChannelKind


class JoinedMessage(BaseModel):
    type: Literal["joined"] = "joined"
    channel: str


class LeftMessage(BaseModel):
    type: Literal["left"] = "left"
    channel: str


class EventMessage(BaseModel):
    """Server message carrying one published event."""

    type: Literal["event"] = "event"
    topic: Topic
    data: dict[str, Any]
    timestamp: datetime


class PongMessage(BaseModel):
    """Pong response for keep-alive."""

    type: Literal["pong"] = "pong"


class ErrorMessage(BaseModel):
    """Error message from server."""

    type: Literal["error"] = "error"
    message: str
