from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.dal.models import MAX_ROUNDS, RoundEntry, SessionStatus

_MAX_ROUND_ENTRIES = 20


class _CamelRequest(BaseModel):
    """Request bodies use camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CreateSessionRequest(_CamelRequest):
    player_name: str = Field(min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=2000)
    api_key: str | None = Field(default=None, max_length=500)

    @field_validator("player_name")
    @classmethod
    def _strip_player_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("player_name must not be blank")
        return v


class SaveRound1Request(_CamelRequest):
    sub_rounds_data: list[RoundEntry] = Field(max_length=_MAX_ROUND_ENTRIES)
    total_score: int = Field(ge=0)
    total_time: int = Field(ge=0)


class SaveRound2Request(_CamelRequest):
    round_data: list[RoundEntry] = Field(max_length=_MAX_ROUND_ENTRIES)
    round_score: int = Field(ge=0)
    round_time: int = Field(ge=0)
    previous_total_score: int | None = Field(default=None, ge=0)


class SaveRound3Request(SaveRound2Request):
    total_game_time: int | None = Field(default=None, ge=0)


class LeaderboardEntry(BaseModel, frozen=True):
    """One ranked row of the persisted leaderboard (finished sessions only)."""

    rank: int
    session_id: str
    player_name: str
    avatar_url: str | None = None
    total_score: int
    total_time: int
    created_at: datetime | None = None


class UpdateSessionRequest(_CamelRequest):
    """Partial update; only the fields present in the body are applied."""

    player_name: str | None = Field(default=None, min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=2000)
    current_round: int | None = Field(default=None, ge=1, le=MAX_ROUNDS)
    status: SessionStatus | None = None
    total_score: int | None = Field(default=None, ge=0)
    total_time: int | None = Field(default=None, ge=0)
