"""WebSocket module for real-time report events."""

from app.websocket.manager import ConnectionManager, manager
from app.websocket.router import router as websocket_router

__all__ = ["ConnectionManager", "manager", "websocket_router"]
