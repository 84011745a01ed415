"""Live leaderboard service.

Owns the in-memory scoreboard and connection registry, and pushes player
progress to the session store in background tasks. The live path never waits
on the store: a slow or failing store only shows up in the logs.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from live.board.registry import SessionRegistry
from live.board.scoreboard import ScoreBoard
from shared.dal.models import SessionStatus
from shared.supabase.local_repository import make_local_session_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from live.board.models import LeaderboardRow, PlayerProfile
    from sessions.service import GameSessionService
    from shared.dal.models import RoundEntry

logger = structlog.get_logger()


class LiveBoard:
    """join / update_progress / disconnect / round_complete / game_complete.

    Mutations happen synchronously on the event loop; persistence is
    scheduled as tasks. Tasks for one player run one at a time in the order
    they were scheduled, so round saves cannot overtake each other.
    """

    def __init__(
        self,
        session_service: GameSessionService,
        persistence_timeout: float = 10.0,
        on_session_created: Callable[[str, str], Awaitable[None]] | None = None,
    ) -> None:
        self._service = session_service
        self._persistence_timeout = persistence_timeout
        self._on_session_created = on_session_created
        self._registry = SessionRegistry()
        self._scoreboard = ScoreBoard()
        self._player_locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def scoreboard(self) -> ScoreBoard:
        return self._scoreboard

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def leaderboard(self) -> list[LeaderboardRow]:
        return self._scoreboard.ranked(online=self._registry.online_names())

    def join(
        self,
        connection_id: str,
        display_name: str,
        avatar_url: str | None = None,
        api_key: str | None = None,
    ) -> PlayerProfile:
        """Bind a connection to a player, creating the profile on first join.

        The player's session is looked up or created once per name; when it
        resolves, the joining connection is told its id.
        """
        previous = self._registry.resolve(connection_id)
        if previous is not None and previous != display_name:
            logger.info("connection switched player", previous=previous, player_name=display_name)

        profile = self._scoreboard.upsert(display_name, avatar_url)
        self._registry.bind(connection_id, display_name)

        session_task = self._registry.session_task(display_name)
        if session_task is None:
            session_task = asyncio.create_task(self._open_session(display_name, avatar_url, api_key))
            self._track(session_task)
            self._registry.remember_session(display_name, session_task)
        if self._on_session_created is not None:
            self._track(asyncio.create_task(self._announce_session(connection_id, session_task)))

        logger.info("player joined", player_name=display_name, connection_id=connection_id)
        return profile

    def update_progress(self, connection_id: str, fields: dict[str, Any]) -> PlayerProfile | None:
        """Merge progress fields into the bound player's profile. None when not joined."""
        display_name = self._registry.resolve(connection_id)
        if display_name is None:
            return None
        return self._scoreboard.merge(display_name, fields)

    def disconnect(self, connection_id: str) -> str | None:
        """Drop the connection binding. The profile and its score stay."""
        display_name = self._registry.unbind(connection_id)
        if display_name is not None:
            logger.info("player disconnected", player_name=display_name, connection_id=connection_id)
        return display_name

    def round_complete(
        self,
        connection_id: str,
        round_number: int,
        entries: list[RoundEntry],
        round_score: int,
        round_time: int,
        total_score: int | None = None,
    ) -> PlayerProfile | None:
        """Record a finished round and save it in the background."""
        display_name = self._registry.resolve(connection_id)
        if display_name is None:
            return None
        profile = self._scoreboard.merge(
            display_name,
            {"status": f"Completed Round {round_number}", "score": total_score},
        )

        async def save(session_id: str) -> None:
            await self._service.save_round(session_id, round_number, entries, round_score, round_time)

        self._schedule(display_name, f"save round {round_number}", save)
        return profile

    def game_complete(self, connection_id: str, total_score: int, total_time: int) -> PlayerProfile | None:
        """Record the final totals and complete the session in the background."""
        display_name = self._registry.resolve(connection_id)
        if display_name is None:
            return None
        profile = self._scoreboard.merge(
            display_name,
            {"status": SessionStatus.FINISHED.value, "score": total_score, "total_time": total_time},
        )

        async def complete(session_id: str) -> None:
            await self._service.complete_session(session_id, total_score, total_time)

        self._schedule(display_name, "complete session", complete)
        return profile

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding persistence tasks; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout or self._persistence_timeout)
        for task in still_running:
            task.cancel()
        for task in still_running:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if still_running:
            logger.warning("cancelled pending persistence tasks", count=len(still_running))

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule(
        self,
        display_name: str,
        action: str,
        operation: Callable[[str], Awaitable[None]],
    ) -> None:
        self._track(asyncio.create_task(self._persist(display_name, action, operation)))

    async def _persist(
        self,
        display_name: str,
        action: str,
        operation: Callable[[str], Awaitable[None]],
    ) -> None:
        lock = self._player_locks.setdefault(display_name, asyncio.Lock())
        async with lock:
            session_task = self._registry.session_task(display_name)
            if session_task is None:  # pragma: no cover - join always starts one
                return
            session_id = await session_task
            try:
                async with asyncio.timeout(self._persistence_timeout):
                    await operation(session_id)
            except TimeoutError:
                logger.warning("persistence timed out", action=action, player_name=display_name, session_id=session_id)
            except Exception:
                logger.exception("failed to persist", action=action, player_name=display_name, session_id=session_id)

    async def _open_session(self, display_name: str, avatar_url: str | None, api_key: str | None) -> str:
        """Create the player's session. Never raises; falls back to a local id."""
        try:
            async with asyncio.timeout(self._persistence_timeout):
                session = await self._service.create_session(display_name, avatar_url, api_key)
        except TimeoutError:
            logger.warning("session creation timed out", player_name=display_name)
        except Exception:
            logger.exception("failed to create session", player_name=display_name)
        else:
            logger.info("session opened", player_name=display_name, session_id=session.id)
            return session.id
        return make_local_session_id()

    async def _announce_session(self, connection_id: str, session_task: asyncio.Task[str]) -> None:
        session_id = await session_task
        if self._on_session_created is None:  # pragma: no cover
            return
        try:
            await self._on_session_created(connection_id, session_id)
        except Exception:
            logger.exception("error in on_session_created callback", connection_id=connection_id)
