"""Supabase (PostgREST) backed session repository."""

from __future__ import annotations

import re
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from shared.dal.models import GameSession, SessionStats, SessionStatus
from shared.dal.session_repository import PersistenceError, SessionRepository

if TYPE_CHECKING:
    from shared.supabase.client import SupabaseClient

logger = structlog.get_logger()

_RETURN_REPRESENTATION = {"Prefer": "return=representation"}
_COUNT_EXACT = {"Prefer": "count=exact"}
_CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)$")

# Postgres "invalid_text_representation": a malformed uuid in an id filter.
_INVALID_TEXT_REPRESENTATION = "22P02"

_MAX_ERROR_BODY = 200
_STATS_PAGE_SIZE = 1000


class SupabaseSessionRepository(SessionRepository):
    """PostgREST implementation of SessionRepository.

    Every call is a single HTTP request against ``/rest/v1/<table>``; the store
    serializes per-row updates itself, so no client-side locking is done here.
    Transport errors, non-2xx responses and bodies that do not validate are
    raised as PersistenceError.
    """

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    @property
    def is_durable(self) -> bool:
        return True

    async def create_session(
        self,
        player_name: str,
        avatar_url: str | None = None,
        api_key_hash: str | None = None,
    ) -> GameSession:
        response = await self._request(
            "POST",
            json={"player_name": player_name, "avatar_url": avatar_url, "api_key_hash": api_key_hash},
            headers=_RETURN_REPRESENTATION,
        )
        rows = self._parse_sessions(response)
        if not rows:
            raise PersistenceError("Session store returned no row for insert")
        logger.info("created game session", player_name=player_name, session_id=rows[0].id)
        return rows[0]

    async def get_session(self, session_id: str) -> GameSession | None:
        try:
            response = await self._request("GET", params={"id": f"eq.{session_id}", "select": "*"})
        except _InvalidIdError:
            return None
        rows = self._parse_sessions(response)
        return rows[0] if rows else None

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> GameSession | None:
        try:
            response = await self._request(
                "PATCH",
                params={"id": f"eq.{session_id}"},
                json=fields,
                headers=_RETURN_REPRESENTATION,
            )
        except _InvalidIdError:
            return None
        rows = self._parse_sessions(response)
        if not rows:
            logger.warning("update had no effect (session not found)", session_id=session_id)
            return None
        return rows[0]

    async def get_finished_sessions(self, limit: int) -> list[GameSession]:
        response = await self._request(
            "GET",
            params={
                "select": "*",
                "status": f"eq.{SessionStatus.FINISHED.value}",
                "order": "total_score.desc,total_time.asc",
                "limit": str(limit),
            },
        )
        return self._parse_sessions(response)

    async def get_player_sessions(self, player_name: str) -> list[GameSession]:
        response = await self._request(
            "GET",
            params={"select": "*", "player_name": f"eq.{player_name}", "order": "created_at.desc"},
        )
        return self._parse_sessions(response)

    async def get_recent_sessions(self, limit: int) -> list[GameSession]:
        response = await self._request(
            "GET",
            params={"select": "*", "order": "created_at.desc", "limit": str(limit)},
        )
        return self._parse_sessions(response)

    async def get_stats(self) -> SessionStats:
        count_response = await self._request(
            "GET",
            params={"select": "id", "limit": "1"},
            headers=_COUNT_EXACT,
        )
        total = _parse_total_count(count_response)

        finished_filter = f"eq.{SessionStatus.FINISHED.value}"
        finished_response = await self._request(
            "GET",
            params={"select": "id", "status": finished_filter, "limit": "1"},
            headers=_COUNT_EXACT,
        )
        finished = _parse_total_count(finished_response)

        # Responses are capped at the server's max-rows, so scores are paged.
        scores: list[int] = []
        while len(scores) < finished:
            page = await self._request(
                "GET",
                params={
                    "select": "total_score",
                    "status": finished_filter,
                    "order": "id.asc",
                    "limit": str(_STATS_PAGE_SIZE),
                    "offset": str(len(scores)),
                },
            )
            try:
                rows = [int(row["total_score"] or 0) for row in page.json()]
            except (ValueError, TypeError, KeyError) as exc:
                raise PersistenceError("Malformed score rows from session store") from exc
            if not rows:
                break
            scores.extend(rows)

        average = round(sum(scores) / len(scores), 2) if scores else 0.0
        return SessionStats(total_sessions=total, finished_sessions=finished, average_score=average)

    async def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.http.request(
                method,
                f"/{self._client.table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Session store request failed: {exc}") from exc

        if response.status_code == HTTPStatus.BAD_REQUEST and _error_code(response) == _INVALID_TEXT_REPRESENTATION:
            raise _InvalidIdError
        if response.is_error:
            raise PersistenceError(
                f"Session store returned {response.status_code}: {response.text[:_MAX_ERROR_BODY]}",
            )
        return response

    @staticmethod
    def _parse_sessions(response: httpx.Response) -> list[GameSession]:
        try:
            rows = response.json()
            if not isinstance(rows, list):
                raise TypeError("expected a JSON array")
            return [GameSession.model_validate(row) for row in rows]
        except (ValueError, TypeError) as exc:
            raise PersistenceError(f"Malformed response from session store: {exc}") from exc


class _InvalidIdError(Exception):
    """The id filter could not be cast to the column type; treated as not found."""


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None


def _parse_total_count(response: httpx.Response) -> int:
    """Read the exact row count from a ``Content-Range: 0-0/57`` header."""
    match = _CONTENT_RANGE_TOTAL.search(response.headers.get("content-range", ""))
    if match is None:
        raise PersistenceError("Session store did not return a row count")
    return int(match.group(1))
