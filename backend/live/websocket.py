"""WebSocket handler for the live leaderboard."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from live.messages import (
    GameCompleteMessage,
    JoinMessage,
    PingMessage,
    RoundCompleteMessage,
    UpdateProgressMessage,
    parse_live_message,
)

if TYPE_CHECKING:
    from live.board.manager import LiveBoard
    from live.connections import LiveConnectionManager
    from server.settings import ServerSettings

logger = structlog.get_logger()


class _LiveContext:
    """Bundles per-connection state extracted from app.state."""

    __slots__ = ("board", "connection_id", "connections", "log")

    def __init__(self, websocket: WebSocket) -> None:
        self.board: LiveBoard = websocket.app.state.live_board
        self.connections: LiveConnectionManager = websocket.app.state.live_connections
        self.connection_id: str = str(uuid.uuid4())
        self.log = logger.bind(connection_id=self.connection_id)


def leaderboard_message(board: LiveBoard) -> dict:
    return {"type": "leaderboard_update", "leaderboard": [row.model_dump() for row in board.leaderboard()]}


async def leaderboard_websocket(websocket: WebSocket) -> None:
    """Handle one viewer/player connection to the live leaderboard."""
    if not _check_origin(websocket):
        await websocket.close(code=4003, reason="forbidden_origin")
        return

    await websocket.accept()
    ctx = _LiveContext(websocket)
    ctx.connections.add(ctx.connection_id, websocket)
    ctx.log.info("live connection opened", connections=len(ctx.connections))

    try:
        await websocket.send_json(leaderboard_message(ctx.board))
        await _message_loop(websocket, ctx)
    except WebSocketDisconnect:
        pass
    except Exception:  # pragma: no cover
        ctx.log.exception("unexpected error in live websocket")
    finally:
        _cleanup_connection(ctx)


def _check_origin(websocket: WebSocket) -> bool:
    settings: ServerSettings = websocket.app.state.settings
    ws_allowed_origin = settings.ws_allowed_origin
    if not ws_allowed_origin:
        return True
    return websocket.headers.get("origin", "") == ws_allowed_origin


async def _message_loop(websocket: WebSocket, ctx: _LiveContext) -> None:
    while True:
        raw = await _receive_frame(websocket)
        if raw is None:
            await websocket.send_json({"type": "error", "message": "Binary frames are not supported"})
            continue
        try:
            message = parse_live_message(raw)
        except (ValueError, ValidationError) as e:
            await websocket.send_json({"type": "error", "message": str(e)})
            continue

        if isinstance(message, PingMessage):
            await websocket.send_json({"type": "pong"})
            continue

        if isinstance(message, JoinMessage):
            ctx.board.join(ctx.connection_id, message.name, message.avatar, message.api_key)
            ctx.log = ctx.log.bind(player_name=message.name)
            changed = True
        elif isinstance(message, UpdateProgressMessage):
            changed = ctx.board.update_progress(ctx.connection_id, message.progress_fields()) is not None
        elif isinstance(message, RoundCompleteMessage):
            changed = (
                ctx.board.round_complete(
                    ctx.connection_id,
                    message.round,
                    message.entries,
                    message.score,
                    message.time_taken,
                    message.total_score,
                )
                is not None
            )
        elif isinstance(message, GameCompleteMessage):
            changed = ctx.board.game_complete(ctx.connection_id, message.total_score, message.total_time) is not None
        else:  # pragma: no cover
            continue

        if not changed:
            ctx.log.debug("event ignored, connection has not joined", message_type=message.type)
            continue
        await ctx.connections.broadcast(leaderboard_message(ctx.board))


async def _receive_frame(websocket: WebSocket) -> str | None:
    """Next text frame, or None for a binary frame."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


def _cleanup_connection(ctx: _LiveContext) -> None:
    """Forget the connection. The player's profile stays on the board."""
    ctx.board.disconnect(ctx.connection_id)
    ctx.connections.remove(ctx.connection_id)
    ctx.log.info("live connection closed", connections=len(ctx.connections))
