"""Abstract interface for game session persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shared.dal.models import GameSession, SessionStats


class PersistenceError(Exception):
    """The session store could not be reached or returned an unusable response."""


class SessionRepository(ABC):
    """Abstract interface for game session persistence.

    ``get_session`` and ``update_session`` return None for unknown ids; every
    other failure is raised as PersistenceError.
    """

    @property
    @abstractmethod
    def is_durable(self) -> bool:
        """Whether writes survive a process restart."""
        ...

    @abstractmethod
    async def create_session(
        self,
        player_name: str,
        avatar_url: str | None = None,
        api_key_hash: str | None = None,
    ) -> GameSession: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> GameSession | None: ...

    @abstractmethod
    async def update_session(self, session_id: str, fields: dict[str, Any]) -> GameSession | None: ...

    @abstractmethod
    async def get_finished_sessions(self, limit: int) -> list[GameSession]:
        """Finished sessions ordered by total_score desc, total_time asc."""
        ...

    @abstractmethod
    async def get_player_sessions(self, player_name: str) -> list[GameSession]:
        """All sessions for one player, newest first."""
        ...

    @abstractmethod
    async def get_recent_sessions(self, limit: int) -> list[GameSession]: ...

    @abstractmethod
    async def get_stats(self) -> SessionStats: ...
