"""Game session rules shared by the REST API and the live channel.

All durable state lives behind a SessionRepository. This service owns the
forward-only status progression (Playing -> Round 2 -> Round 3 -> Finished),
running totals, and the local fallback when the store cannot create a row.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import structlog

from sessions.types import LeaderboardEntry
from shared.dal.models import MAX_ROUNDS, GameSession, SessionStatus, is_local_session_id
from shared.dal.session_repository import PersistenceError
from shared.ranking import rank_by_score
from shared.supabase.local_repository import make_local_session_id

if TYPE_CHECKING:
    from shared.dal.models import RoundEntry, SessionStats
    from shared.dal.session_repository import SessionRepository

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset(
    {"player_name", "avatar_url", "current_round", "status", "total_score", "total_time"},
)


class SessionError(Exception):
    pass


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class SessionConflictError(SessionError):
    """The requested change would move a session backwards or skip a round."""


class InvalidSessionUpdateError(SessionError):
    pass


def hash_api_key(api_key: str | None) -> str | None:
    """SHA-256 hex digest of an API key. Raw keys are never stored."""
    if not api_key:
        return None
    return hashlib.sha256(api_key.encode()).hexdigest()


class GameSessionService:
    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository

    @property
    def is_durable(self) -> bool:
        return self._repository.is_durable

    async def create_session(
        self,
        player_name: str,
        avatar_url: str | None = None,
        api_key: str | None = None,
    ) -> GameSession:
        """Create a session row. Falls back to a local placeholder when the store fails."""
        try:
            return await self._repository.create_session(player_name, avatar_url, hash_api_key(api_key))
        except PersistenceError as exc:
            logger.warning("failed to create session, using local session", player_name=player_name, error=str(exc))
            return GameSession(id=make_local_session_id(), player_name=player_name, avatar_url=avatar_url)

    async def get_session(self, session_id: str) -> GameSession | None:
        if is_local_session_id(session_id):
            return None
        return await self._repository.get_session(session_id)

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> GameSession:
        """Apply a patch restricted to UPDATABLE_FIELDS. Status may only move forward."""
        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise InvalidSessionUpdateError(f"Fields not updatable: {', '.join(unknown)}")
        if not fields:
            raise InvalidSessionUpdateError("No fields to update")

        session = await self._require_session(session_id)
        patch = dict(fields)
        if "status" in patch:
            try:
                new_status = SessionStatus(patch["status"])
            except ValueError as exc:
                raise InvalidSessionUpdateError(f"Unknown status: {patch['status']!r}") from exc
            if new_status.order < session.status.order:
                raise SessionConflictError(f"Status cannot move back from '{session.status}' to '{new_status}'")
            patch["status"] = new_status.value

        updated = await self._repository.update_session(session_id, patch)
        if updated is None:
            raise SessionNotFoundError(session_id)
        return updated

    async def save_round(
        self,
        session_id: str,
        round_number: int,
        entries: list[RoundEntry],
        round_score: int,
        round_time: int,
        *,
        previous_total_score: int | None = None,
        total_game_time: int | None = None,
    ) -> bool:
        """Store one round and advance the session status.

        Rounds must be saved in order: round N requires exactly N - 1 completed
        rounds, anything else raises SessionConflictError, as does a round that
        would move the status back (e.g. after the session was finished early).
        The new total is the caller's ``previous_total_score`` (or the stored
        scores of earlier rounds) plus this round's score. Returns False for
        local sessions.
        """
        if not 1 <= round_number <= MAX_ROUNDS:
            raise ValueError(f"round_number must be between 1 and {MAX_ROUNDS}, got {round_number}")
        if is_local_session_id(session_id):
            logger.debug("local session, round not persisted", session_id=session_id, round=round_number)
            return False

        session = await self._require_session(session_id)
        if session.rounds_completed != round_number - 1:
            raise SessionConflictError(
                f"Round {round_number} cannot be saved after {session.rounds_completed} completed round(s)",
            )
        next_status = SessionStatus.after_round(round_number)
        if session.status.order > next_status.order:
            raise SessionConflictError(f"Round {round_number} cannot be saved once the session is '{session.status}'")

        earlier = range(1, round_number)
        base_score = (
            previous_total_score
            if previous_total_score is not None
            else sum(session.round_score(n) for n in earlier)
        )
        total_time = (
            total_game_time
            if total_game_time is not None
            else sum(session.round_time(n) for n in earlier) + round_time
        )
        fields: dict[str, Any] = {
            f"round{round_number}_data": [e.model_dump(by_alias=True, exclude_none=True) for e in entries],
            f"round{round_number}_score": round_score,
            f"round{round_number}_time": round_time,
            "total_score": base_score + round_score,
            "total_time": total_time,
            "rounds_completed": round_number,
            "current_round": min(round_number + 1, MAX_ROUNDS),
            "status": next_status.value,
        }
        if await self._repository.update_session(session_id, fields) is None:
            raise SessionNotFoundError(session_id)

        logger.info(
            "saved round",
            session_id=session_id,
            round=round_number,
            round_score=round_score,
            total_score=fields["total_score"],
        )
        return True

    async def complete_session(self, session_id: str, total_score: int, total_time: int) -> bool:
        """Mark a session Finished with final totals. Returns False for local sessions."""
        if is_local_session_id(session_id):
            logger.debug("local session, completion not persisted", session_id=session_id)
            return False

        await self._require_session(session_id)
        fields = {
            "total_score": total_score,
            "total_time": total_time,
            "current_round": MAX_ROUNDS,
            "status": SessionStatus.FINISHED.value,
        }
        if await self._repository.update_session(session_id, fields) is None:
            raise SessionNotFoundError(session_id)
        logger.info("completed session", session_id=session_id, total_score=total_score)
        return True

    async def get_leaderboard(self, limit: int) -> list[LeaderboardEntry]:
        sessions = await self._repository.get_finished_sessions(limit)
        ranked = rank_by_score(
            sessions,
            score=lambda s: s.total_score,
            elapsed=lambda s: s.total_time,
            name=lambda s: s.player_name,
        )
        return [
            LeaderboardEntry(
                rank=rank,
                session_id=session.id,
                player_name=session.player_name,
                avatar_url=session.avatar_url,
                total_score=session.total_score,
                total_time=session.total_time,
                created_at=session.created_at,
            )
            for rank, session in ranked
        ]

    async def get_player_history(self, player_name: str) -> list[GameSession]:
        return await self._repository.get_player_sessions(player_name)

    async def get_recent_sessions(self, limit: int) -> list[GameSession]:
        return await self._repository.get_recent_sessions(limit)

    async def get_stats(self) -> SessionStats:
        return await self._repository.get_stats()

    async def _require_session(self, session_id: str) -> GameSession:
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session
