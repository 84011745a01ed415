"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.models import (
    GameSession,
    RoundEntry,
    SessionStats,
    SessionStatus,
    is_local_session_id,
)
from shared.dal.session_repository import PersistenceError, SessionRepository

__all__ = [
    "GameSession",
    "PersistenceError",
    "RoundEntry",
    "SessionRepository",
    "SessionStats",
    "SessionStatus",
    "is_local_session_id",
]
