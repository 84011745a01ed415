"""REST handlers for game sessions, leaderboard, player history and admin views.

Handlers are stateless wrappers over GameSessionService. They never touch the
live scoreboard.
"""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_snake
from starlette.responses import JSONResponse

from sessions.service import (
    InvalidSessionUpdateError,
    SessionConflictError,
    SessionNotFoundError,
)
from sessions.types import (
    CreateSessionRequest,
    SaveRound1Request,
    SaveRound2Request,
    SaveRound3Request,
    UpdateSessionRequest,
)
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.dal.models import MAX_ROUNDS
from shared.dal.session_repository import PersistenceError

if TYPE_CHECKING:
    from starlette.requests import Request

    from server.settings import ServerSettings
    from sessions.service import GameSessionService
    from shared.dal.models import GameSession, RoundEntry

logger = structlog.get_logger()

_MAX_REQUEST_BODY_SIZE = 512 * 1024
_MAX_LIST_LIMIT = 500

ENDPOINTS = {
    "health": "GET /health",
    "createSession": "POST /api/sessions",
    "getSession": "GET /api/sessions/{session_id}",
    "updateSession": "PUT /api/sessions/{session_id}",
    "saveRound1": "PUT /api/sessions/{session_id}/round1",
    "saveRound2": "PUT /api/sessions/{session_id}/round2",
    "saveRound3": "PUT /api/sessions/{session_id}/round3",
    "leaderboard": "GET /api/leaderboard",
    "playerHistory": "GET /api/players/{player_name}/sessions",
    "adminSessions": "GET /api/admin/sessions",
    "adminStats": "GET /api/admin/stats",
    "liveLeaderboard": "WS /ws/leaderboard",
}


class _BadRequest(Exception):
    pass


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def _service(request: Request) -> GameSessionService:
    return request.app.state.session_service


def _dump(session: GameSession) -> dict[str, Any]:
    return session.model_dump(mode="json", by_alias=True, exclude={"api_key_hash"})


async def _read_json_object(request: Request) -> dict[str, Any]:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise _BadRequest("Request body too large")
    if not raw_body.strip():
        return {}
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:  # fmt: skip
        raise _BadRequest("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise _BadRequest("JSON body must be an object")
    return body


def _parse_limit(request: Request, default: int) -> int:
    """Positive integer ``limit`` query param; invalid values fall back to the default."""
    try:
        value = int(request.query_params.get("limit", default))
    except ValueError:
        return default
    if value < 1:
        return default
    return min(value, _MAX_LIST_LIMIT)


def _store_failure(exc: PersistenceError, action: str) -> JSONResponse:
    logger.warning("session store failure", action=action, error=str(exc))
    return _error(f"Failed to {action}: session store unavailable", HTTPStatus.BAD_GATEWAY)


async def service_info(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "message": "Promptify Backend API",
            "version": APP_VERSION,
            "endpoints": ENDPOINTS,
            "persistence": "connected" if _service(request).is_durable else "not configured",
        },
    )


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "persistence": "connected" if _service(request).is_durable else "not configured",
        },
    )


async def create_session(request: Request) -> JSONResponse:
    """POST /api/sessions - create a session (local placeholder when the store is down)."""
    try:
        body = await _read_json_object(request)
        req = CreateSessionRequest.model_validate(body)
    except _BadRequest as e:
        return _error(str(e), HTTPStatus.BAD_REQUEST)
    except ValidationError:
        if not str(body.get("playerName") or body.get("player_name") or "").strip():
            return _error("Player name is required", HTTPStatus.BAD_REQUEST)
        return _error("Invalid session request", HTTPStatus.BAD_REQUEST)

    session = await _service(request).create_session(req.player_name, req.avatar_url, req.api_key)
    return JSONResponse({"success": True, "session": _dump(session)}, status_code=HTTPStatus.CREATED)


async def get_session(request: Request) -> JSONResponse:
    session_id = request.path_params["session_id"]
    try:
        session = await _service(request).get_session(session_id)
    except PersistenceError as e:
        return _store_failure(e, "fetch session")
    if session is None:
        return _error("Session not found", HTTPStatus.NOT_FOUND)
    return JSONResponse({"success": True, "session": _dump(session)})


async def update_session(request: Request) -> JSONResponse:
    """PUT /api/sessions/{session_id} - patch allowed fields (camelCase or snake_case keys)."""
    session_id = request.path_params["session_id"]
    try:
        body = await _read_json_object(request)
        req = UpdateSessionRequest.model_validate(body)
    except _BadRequest as e:
        return _error(str(e), HTTPStatus.BAD_REQUEST)
    except ValidationError as e:
        rejected = sorted({to_snake(str(err["loc"][0])) for err in e.errors() if err["loc"]})
        return _error(f"Invalid session update: {', '.join(rejected)}", HTTPStatus.BAD_REQUEST)

    dumped = req.model_dump(mode="json", exclude_unset=True)
    fields = {key: value for key, value in dumped.items() if value is not None or key == "avatar_url"}
    try:
        session = await _service(request).update_session(session_id, fields)
    except InvalidSessionUpdateError as e:
        return _error(str(e), HTTPStatus.BAD_REQUEST)
    except SessionNotFoundError:
        return _error("Session not found", HTTPStatus.NOT_FOUND)
    except SessionConflictError as e:
        return _error(str(e), HTTPStatus.CONFLICT)
    except PersistenceError as e:
        return _store_failure(e, "update session")
    return JSONResponse({"success": True, "session": _dump(session)})


async def save_round1(request: Request) -> JSONResponse:
    """PUT /api/sessions/{session_id}/round1 - sub-round entries plus the round 1 score and time."""
    try:
        req = SaveRound1Request.model_validate(await _read_json_object(request))
    except (_BadRequest, ValidationError) as e:
        return _error(_describe_invalid(e, "round 1"), HTTPStatus.BAD_REQUEST)
    return await _save_round(request, 1, req.sub_rounds_data, req.total_score, req.total_time)


async def save_round2(request: Request) -> JSONResponse:
    try:
        req = SaveRound2Request.model_validate(await _read_json_object(request))
    except (_BadRequest, ValidationError) as e:
        return _error(_describe_invalid(e, "round 2"), HTTPStatus.BAD_REQUEST)
    return await _save_round(
        request,
        2,
        req.round_data,
        req.round_score,
        req.round_time,
        previous_total_score=req.previous_total_score,
    )


async def save_round3(request: Request) -> JSONResponse:
    """PUT /api/sessions/{session_id}/round3 - final round; moves the session to Finished."""
    try:
        req = SaveRound3Request.model_validate(await _read_json_object(request))
    except (_BadRequest, ValidationError) as e:
        return _error(_describe_invalid(e, "round 3"), HTTPStatus.BAD_REQUEST)
    return await _save_round(
        request,
        3,
        req.round_data,
        req.round_score,
        req.round_time,
        previous_total_score=req.previous_total_score,
        total_game_time=req.total_game_time,
    )


def _describe_invalid(exc: _BadRequest | ValidationError, label: str) -> str:
    if isinstance(exc, _BadRequest):
        return str(exc)
    missing = [str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"]
    if missing:
        return f"Missing {label} fields: {', '.join(missing)}"
    return f"Invalid {label} data"


async def _save_round(
    request: Request,
    round_number: int,
    entries: list[RoundEntry],
    round_score: int,
    round_time: int,
    *,
    previous_total_score: int | None = None,
    total_game_time: int | None = None,
) -> JSONResponse:
    session_id = request.path_params["session_id"]
    try:
        saved = await _service(request).save_round(
            session_id,
            round_number,
            entries,
            round_score,
            round_time,
            previous_total_score=previous_total_score,
            total_game_time=total_game_time,
        )
    except SessionNotFoundError:
        return _error("Session not found", HTTPStatus.NOT_FOUND)
    except SessionConflictError as e:
        return _error(str(e), HTTPStatus.CONFLICT)
    except PersistenceError as e:
        return _store_failure(e, f"save round {round_number} data")

    if not saved:
        return JSONResponse({"success": False, "message": "Failed to save (session is not durable)"})
    if round_number == MAX_ROUNDS:
        return JSONResponse({"success": True, "message": "Round 3 saved, game complete!"})
    return JSONResponse({"success": True, "message": f"Round {round_number} saved"})


async def leaderboard(request: Request) -> JSONResponse:
    settings: ServerSettings = request.app.state.settings
    limit = _parse_limit(request, settings.leaderboard_default_limit)
    try:
        entries = await _service(request).get_leaderboard(limit)
    except PersistenceError as e:
        return _store_failure(e, "fetch leaderboard")
    return JSONResponse({"success": True, "leaderboard": [e.model_dump(mode="json") for e in entries]})


async def player_sessions(request: Request) -> JSONResponse:
    player_name = request.path_params["player_name"]
    try:
        sessions = await _service(request).get_player_history(player_name)
    except PersistenceError as e:
        return _store_failure(e, "fetch player sessions")
    return JSONResponse({"success": True, "sessions": [_dump(s) for s in sessions]})


async def admin_sessions(request: Request) -> JSONResponse:
    settings: ServerSettings = request.app.state.settings
    limit = _parse_limit(request, settings.admin_sessions_limit)
    try:
        sessions = await _service(request).get_recent_sessions(limit)
    except PersistenceError as e:
        return _store_failure(e, "fetch sessions")
    return JSONResponse({"success": True, "sessions": [_dump(s) for s in sessions], "count": len(sessions)})


async def admin_stats(request: Request) -> JSONResponse:
    try:
        stats = await _service(request).get_stats()
    except PersistenceError as e:
        return _store_failure(e, "fetch stats")
    return JSONResponse({"success": True, "stats": stats.model_dump()})
