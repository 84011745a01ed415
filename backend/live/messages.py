"""Typed client-to-server messages for the live leaderboard WebSocket."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from shared.dal.models import MAX_ROUNDS, RoundEntry

# round_complete carries full prompt/output pairs
_MAX_WS_MESSAGE_SIZE = 256 * 1024
_MAX_ROUND_ENTRIES = 20
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def _reject_control_chars(value: str | None, field: str) -> str | None:
    if value is not None and any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError(f"{field} must not contain control characters")
    return value


class _LiveMessage(BaseModel):
    """Keys may be snake_case or camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JoinMessage(_LiveMessage):
    type: Literal["join"]
    name: str = Field(min_length=1, max_length=50)
    avatar: str | None = Field(default=None, max_length=2000)
    api_key: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return _reject_control_chars(v, "name")


class UpdateProgressMessage(_LiveMessage):
    type: Literal["update_progress"]
    score: int | None = Field(default=None, ge=0)
    status: str | None = Field(default=None, max_length=100)
    total_time: int | None = Field(default=None, ge=0)
    avatar: str | None = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str | None) -> str | None:
        return _reject_control_chars(v, "status")

    def progress_fields(self) -> dict[str, str | int | None]:
        return {"score": self.score, "status": self.status, "total_time": self.total_time, "avatar_url": self.avatar}


class RoundCompleteMessage(_LiveMessage):
    type: Literal["round_complete"]
    round: int = Field(ge=1, le=MAX_ROUNDS)
    entries: list[RoundEntry] = Field(default_factory=list, max_length=_MAX_ROUND_ENTRIES)
    score: int = Field(default=0, ge=0)
    time_taken: int = Field(default=0, ge=0)
    total_score: int | None = Field(default=None, ge=0)


class GameCompleteMessage(_LiveMessage):
    type: Literal["game_complete"]
    total_score: int = Field(ge=0)
    total_time: int = Field(ge=0)


class PingMessage(_LiveMessage):
    type: Literal["ping"]


LiveClientMessage = Annotated[
    JoinMessage | UpdateProgressMessage | RoundCompleteMessage | GameCompleteMessage | PingMessage,
    Field(discriminator="type"),
]

_live_message_adapter: TypeAdapter[LiveClientMessage] = TypeAdapter(LiveClientMessage)


def parse_live_message(
    raw: str,
) -> JoinMessage | UpdateProgressMessage | RoundCompleteMessage | GameCompleteMessage | PingMessage:
    """Parse and validate a raw JSON string into a typed live message."""
    byte_len = len(raw.encode("utf-8"))
    if byte_len > _MAX_WS_MESSAGE_SIZE:
        raise ValueError(f"Message too large ({byte_len} bytes, max {_MAX_WS_MESSAGE_SIZE})")
    data = json.loads(raw)
    return _live_message_adapter.validate_python(data)
