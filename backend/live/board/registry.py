"""Connection and persisted-session bookkeeping for live players."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncio


class SessionRegistry:
    """Maps live connections to players and players to their persisted session.

    Rebuilt from scratch on restart; nothing here is stored.
    """

    def __init__(self) -> None:
        self._bindings: dict[str, str] = {}  # connection_id -> display_name
        self._sessions: dict[str, asyncio.Task[str]] = {}  # display_name -> session id lookup

    def bind(self, connection_id: str, display_name: str) -> None:
        self._bindings[connection_id] = display_name

    def unbind(self, connection_id: str) -> str | None:
        """Remove a connection binding and return the player it pointed at."""
        return self._bindings.pop(connection_id, None)

    def resolve(self, connection_id: str) -> str | None:
        return self._bindings.get(connection_id)

    def online_names(self) -> set[str]:
        return set(self._bindings.values())

    @property
    def connection_count(self) -> int:
        return len(self._bindings)

    def session_task(self, display_name: str) -> asyncio.Task[str] | None:
        """The task resolving this player's session id, if one was started."""
        return self._sessions.get(display_name)

    def remember_session(self, display_name: str, task: asyncio.Task[str]) -> None:
        self._sessions[display_name] = task
