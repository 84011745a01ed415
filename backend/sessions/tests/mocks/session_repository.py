import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from shared.dal.models import GameSession, SessionStats, SessionStatus
from shared.dal.session_repository import PersistenceError, SessionRepository


class InMemorySessionRepository(SessionRepository):
    """Durable-looking repository backed by a dict, with failure injection.

    Set ``fail_with`` to make every call raise it.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, GameSession] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_with: Exception | None = None
        self._clock = datetime(2025, 1, 1, 10, 0, tzinfo=UTC)

    @property
    def is_durable(self) -> bool:
        return True

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add(self, **fields: Any) -> GameSession:  # noqa: ANN401
        """Insert a session directly, bypassing create_session."""
        now = self._tick()
        fields.setdefault("id", str(uuid.uuid4()))
        session = GameSession(created_at=now, updated_at=now, **fields)
        self.sessions[session.id] = session
        return session

    async def create_session(
        self,
        player_name: str,
        avatar_url: str | None = None,
        api_key_hash: str | None = None,
    ) -> GameSession:
        self._check()
        return self.add(player_name=player_name, avatar_url=avatar_url, api_key_hash=api_key_hash)

    async def get_session(self, session_id: str) -> GameSession | None:
        self._check()
        return self.sessions.get(session_id)

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> GameSession | None:
        self._check()
        self.updates.append((session_id, fields))
        session = self.sessions.get(session_id)
        if session is None:
            return None
        data = session.model_dump()
        data.update(fields, updated_at=self._tick())
        updated = GameSession.model_validate(data)
        self.sessions[session_id] = updated
        return updated

    async def get_finished_sessions(self, limit: int) -> list[GameSession]:
        self._check()
        finished = [s for s in self.sessions.values() if s.status is SessionStatus.FINISHED]
        finished.sort(key=lambda s: (-s.total_score, s.total_time))
        return finished[:limit]

    async def get_player_sessions(self, player_name: str) -> list[GameSession]:
        self._check()
        return sorted(
            (s for s in self.sessions.values() if s.player_name == player_name),
            key=lambda s: s.created_at,
            reverse=True,
        )

    async def get_recent_sessions(self, limit: int) -> list[GameSession]:
        self._check()
        return sorted(self.sessions.values(), key=lambda s: s.created_at, reverse=True)[:limit]

    async def get_stats(self) -> SessionStats:
        self._check()
        scores = [s.total_score for s in self.sessions.values() if s.status is SessionStatus.FINISHED]
        return SessionStats(
            total_sessions=len(self.sessions),
            finished_sessions=len(scores),
            average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
        )


def store_down() -> PersistenceError:
    return PersistenceError("Session store request failed: connection refused")
