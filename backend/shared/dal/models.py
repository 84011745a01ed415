"""Persistence models for the data access layer."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_ROUNDS = 3
LOCAL_SESSION_PREFIX = "local-"


class SessionStatus(StrEnum):
    """Lifecycle of a game session. Values are stored verbatim in the status column."""

    PLAYING = "Playing"
    ROUND_2 = "Round 2"
    ROUND_3 = "Round 3"
    FINISHED = "Finished"

    @property
    def order(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def after_round(cls, round_number: int) -> "SessionStatus":
        """Status a session moves to once ``round_number`` has been saved."""
        return _STATUS_ORDER[round_number]


_STATUS_ORDER = (
    SessionStatus.PLAYING,
    SessionStatus.ROUND_2,
    SessionStatus.ROUND_3,
    SessionStatus.FINISHED,
)


class RoundEntry(BaseModel, frozen=True):
    """One prompt attempt inside a round.

    Round 1 entries carry ``subRoundId``/``targetPhrase``; rounds 2 and 3 carry
    ``targetContent``. Keys are camelCase on the wire and in storage.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    sub_round_id: str | None = None
    target_phrase: str | None = None
    target_content: str | None = None
    prompt: str = Field(max_length=20_000)
    output: str = Field(max_length=200_000)
    score: int = 0
    time_taken: int = Field(default=0, ge=0)  # milliseconds


class GameSession(BaseModel, frozen=True):
    """Record of one game attempt persisted in the ``game_sessions`` table."""

    id: str
    player_name: str
    avatar_url: str | None = None
    api_key_hash: str | None = None

    round1_data: list[RoundEntry] = Field(default_factory=list)
    round2_data: list[RoundEntry] = Field(default_factory=list)
    round3_data: list[RoundEntry] = Field(default_factory=list)
    round1_score: int = 0
    round2_score: int = 0
    round3_score: int = 0
    round1_time: int = 0  # milliseconds
    round2_time: int = 0
    round3_time: int = 0

    total_score: int = 0
    total_time: int = 0
    rounds_completed: int = Field(default=0, ge=0, le=MAX_ROUNDS)
    current_round: int = Field(default=1, ge=1, le=MAX_ROUNDS)
    status: SessionStatus = SessionStatus.PLAYING

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_local(self) -> bool:
        return is_local_session_id(self.id)

    def round_score(self, round_number: int) -> int:
        return getattr(self, f"round{round_number}_score")

    def round_time(self, round_number: int) -> int:
        return getattr(self, f"round{round_number}_time")


class SessionStats(BaseModel, frozen=True):
    """Aggregate counters over all stored sessions."""

    total_sessions: int = 0
    finished_sessions: int = 0
    average_score: float = 0.0


def is_local_session_id(session_id: str) -> bool:
    """Return True for placeholder ids handed out while the store is unavailable."""
    return session_id.startswith(LOCAL_SESSION_PREFIX)
