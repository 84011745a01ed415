"""WebSocket connections subscribed to the live leaderboard."""

from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from starlette.websockets import WebSocket

logger = structlog.get_logger()


class LiveConnectionManager:
    """Every open leaderboard connection, for fan-out.

    All viewers share one channel: every broadcast goes to every connection.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}  # connection_id -> ws

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def add(self, connection_id: str, websocket: WebSocket) -> None:
        self._connections[connection_id] = websocket

    def remove(self, connection_id: str) -> bool:
        """Forget a connection. Returns False if it was not registered."""
        return self._connections.pop(connection_id, None) is not None

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a JSON message to every connection; dead sockets are skipped."""
        payload = json.dumps(message)
        for ws in list(self._connections.values()):
            with contextlib.suppress(ConnectionError, RuntimeError):
                await ws.send_text(payload)

    async def send_to(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Send a JSON message to one connection. Returns True on success."""
        ws = self._connections.get(connection_id)
        if ws is None:
            return False
        try:
            await ws.send_text(json.dumps(message))
        except (ConnectionError, RuntimeError):
            return False
        return True

    async def close_all(self, code: int = 1001, reason: str = "") -> None:
        """Close and forget every connection (server shutdown)."""
        connections, self._connections = self._connections, {}
        for ws in connections.values():
            with contextlib.suppress(ConnectionError, RuntimeError):
                await ws.close(code=code, reason=reason)
        if connections:
            logger.info("closed live connections", count=len(connections))
