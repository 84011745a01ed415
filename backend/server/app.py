from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route, WebSocketRoute

from live.board.manager import LiveBoard
from live.connections import LiveConnectionManager
from live.websocket import leaderboard_websocket
from server.settings import ServerSettings
from sessions.handlers import (
    admin_sessions,
    admin_stats,
    create_session,
    get_session,
    health,
    leaderboard,
    player_sessions,
    save_round1,
    save_round2,
    save_round3,
    service_info,
    update_session,
)
from sessions.service import GameSessionService
from shared.logging import setup_logging
from shared.supabase import LocalSessionRepository, SupabaseClient, SupabaseSessionRepository, SupabaseSettings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx

    from shared.dal.session_repository import SessionRepository

logger = structlog.get_logger()


def _build_repository(
    supabase_settings: SupabaseSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[SessionRepository, SupabaseClient | None]:
    """Pick the session store once. Returns the repository and the client it owns, if any."""
    if not supabase_settings.is_configured:
        logger.warning("session store not configured, sessions will not be persisted")
        return LocalSessionRepository(), None
    client = SupabaseClient(supabase_settings, transport=transport)
    return SupabaseSessionRepository(client), client


def create_app(
    settings: ServerSettings | None = None,
    supabase_settings: SupabaseSettings | None = None,
    session_repository: SessionRepository | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Build the application.

    ``session_repository`` overrides the store chosen from ``supabase_settings``;
    ``transport`` is passed to the Supabase HTTP client.
    """
    if settings is None:  # pragma: no cover
        settings = ServerSettings()
    if supabase_settings is None:  # pragma: no cover
        supabase_settings = SupabaseSettings()

    client: SupabaseClient | None = None
    if session_repository is None:
        session_repository, client = _build_repository(supabase_settings, transport)

    session_service = GameSessionService(session_repository)
    live_connections = LiveConnectionManager()

    async def notify_session_created(connection_id: str, session_id: str) -> None:
        await live_connections.send_to(
            connection_id,
            {"type": "session_created", "session_id": session_id, "durable": session_service.is_durable},
        )

    live_board = LiveBoard(
        session_service,
        persistence_timeout=settings.persistence_timeout_seconds,
        on_session_created=notify_session_created,
    )

    routes = [
        Route("/", service_info, methods=["GET"], name="service_info"),
        Route("/health", health, methods=["GET"], name="health"),
        Route("/api/sessions", create_session, methods=["POST"], name="create_session"),
        Route("/api/sessions/{session_id}", get_session, methods=["GET"], name="get_session"),
        Route("/api/sessions/{session_id}", update_session, methods=["PUT"], name="update_session"),
        Route("/api/sessions/{session_id}/round1", save_round1, methods=["PUT"], name="save_round1"),
        Route("/api/sessions/{session_id}/round2", save_round2, methods=["PUT"], name="save_round2"),
        Route("/api/sessions/{session_id}/round3", save_round3, methods=["PUT"], name="save_round3"),
        Route("/api/leaderboard", leaderboard, methods=["GET"], name="leaderboard"),
        Route("/api/players/{player_name}/sessions", player_sessions, methods=["GET"], name="player_sessions"),
        Route("/api/admin/sessions", admin_sessions, methods=["GET"], name="admin_sessions"),
        Route("/api/admin/stats", admin_stats, methods=["GET"], name="admin_stats"),
        WebSocketRoute("/ws/leaderboard", leaderboard_websocket, name="leaderboard_websocket"),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        if client is not None:
            client.connect()
        yield
        await live_board.drain()
        await live_connections.close_all()
        if client is not None:
            await client.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.state.settings = settings
    app.state.session_service = session_service
    app.state.live_board = live_board
    app.state.live_connections = live_connections

    logger.info("promptify server ready", persistence="connected" if session_service.is_durable else "not configured")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory server.app:get_app."""
    s = ServerSettings()
    setup_logging(log_dir=s.log_dir, log_format=s.log_format)
    return create_app(settings=s, supabase_settings=SupabaseSettings())
