"""WebSocket router for real-time report lifecycle events."""

import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError

from app.auth import authenticate_websocket
from app.database import async_session_maker
from app.errors import RoadTrackerError
from app.websocket.manager import manager
from app.websocket.schemas import (
    ErrorMessage,
    JoinedMessage,
    JoinMessage,
    LeaveMessage,
    LeftMessage,
    PongMessage,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket, token: str | None = Query(None)):
    """
    WebSocket endpoint for real-time report events.

    Protocol:
    - Client connects, optionally with ?token=<bearer token>
    - Every client receives the public report topics
    - Authenticated clients may join their own user channel; operators may
      join the admin channel
    - Server sends pong in response to ping for keep-alive

    Message formats:
    Client -> Server:
        {"type": "join", "channel": "admin"}
        {"type": "join", "channel": "user"}
        {"type": "leave", "channel": "user"}
        {"type": "ping"}

    Server -> Client:
        {"type": "event", "topic": "report:status", "data": {...}, "timestamp": "2026-01-18T10:30:00Z"}
        {"type": "joined", "channel": "user:<id>"}
        {"type": "left", "channel": "user:<id>"}
        {"type": "pong"}
        {"type": "error", "message": "..."}
    """
    try:
        async with async_session_maker() as db:
            user, is_operator = await authenticate_websocket(db, token)
            await db.commit()
    except RoadTrackerError as e:
        logger.info(f"Rejected WebSocket connection: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await manager.connect(websocket, user_id=user.id if user else None, is_operator=is_operator)

    try:
        while True:
            # Receive message from client
            raw_message = await websocket.receive_text()

            try:
                data = json.loads(raw_message)
                msg_type = data.get("type")

                if msg_type == "join":
                    msg = JoinMessage.model_validate(data)
                    channel = await manager.join(websocket, msg.channel)
                    await websocket.send_json(JoinedMessage(channel=channel).model_dump())

                elif msg_type == "leave":
                    msg = LeaveMessage.model_validate(data)
                    channel = await manager.leave(websocket, msg.channel)
                    if channel:
                        await websocket.send_json(LeftMessage(channel=channel).model_dump())

                elif msg_type == "ping":
                    # Respond with pong for keep-alive
                    await websocket.send_json(PongMessage().model_dump())

                else:
                    # Unknown message type
                    error = ErrorMessage(message=f"Unknown message type: {msg_type}")
                    await websocket.send_json(error.model_dump())

            except json.JSONDecodeError:
                error = ErrorMessage(message="Invalid JSON")
                await websocket.send_json(error.model_dump())
            except PydanticValidationError:
                error = ErrorMessage(message="Invalid message")
                await websocket.send_json(error.model_dump())
            except RoadTrackerError as e:
                await websocket.send_json(ErrorMessage(message=e.message).model_dump())

    except WebSocketDisconnect:
        await manager.disconnect(websocket)
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        await manager.disconnect(websocket)
