"""Stand-in repository used when the session store is not configured."""

from __future__ import annotations

import time
from typing import Any
from uuid import uuid4

import structlog

from shared.dal.models import LOCAL_SESSION_PREFIX, GameSession, SessionStats
from shared.dal.session_repository import SessionRepository

logger = structlog.get_logger()


def make_local_session_id() -> str:
    """Placeholder id that signals "not durable" to every caller."""
    return f"{LOCAL_SESSION_PREFIX}{int(time.time() * 1000)}-{uuid4().hex[:8]}"


class LocalSessionRepository(SessionRepository):
    """Null-object repository: nothing is stored, nothing is found.

    Creation hands out ``local-`` placeholder sessions so the live game keeps
    working; reads return empty results and writes report "not found".
    """

    @property
    def is_durable(self) -> bool:
        return False

    async def create_session(
        self,
        player_name: str,
        avatar_url: str | None = None,
        api_key_hash: str | None = None,  # noqa: ARG002
    ) -> GameSession:
        session = GameSession(id=make_local_session_id(), player_name=player_name, avatar_url=avatar_url)
        logger.debug("session store not configured, using local session", session_id=session.id)
        return session

    async def get_session(self, session_id: str) -> GameSession | None:  # noqa: ARG002
        return None

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> GameSession | None:  # noqa: ARG002
        logger.debug("session store not configured, skipping update", session_id=session_id)
        return None

    async def get_finished_sessions(self, limit: int) -> list[GameSession]:  # noqa: ARG002
        return []

    async def get_player_sessions(self, player_name: str) -> list[GameSession]:  # noqa: ARG002
        return []

    async def get_recent_sessions(self, limit: int) -> list[GameSession]:  # noqa: ARG002
        return []

    async def get_stats(self) -> SessionStats:
        return SessionStats()
