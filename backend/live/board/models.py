"""Live player state and the leaderboard rows sent over the WebSocket."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from pydantic import BaseModel

AVATAR_PLACEHOLDER_URL = "https://api.dicebear.com/7.x/bottts/svg?seed={seed}"
INITIAL_STATUS = "Joined"


def placeholder_avatar(display_name: str) -> str:
    """Deterministic avatar URL seeded by the player's name."""
    return AVATAR_PLACEHOLDER_URL.format(seed=quote(display_name, safe=""))


@dataclass
class PlayerProfile:
    """Public state of one player, keyed by display name.

    Lives for the whole process: disconnecting keeps the profile (and score)
    so the same name can reconnect and carry on.
    """

    display_name: str
    avatar_url: str
    score: int = 0
    status: str = INITIAL_STATUS
    total_time: int = 0  # milliseconds, ranking tie-break
    is_bot: bool = False


class LeaderboardRow(BaseModel):
    """One ranked player in a ``leaderboard_update`` message."""

    rank: int
    name: str
    avatar: str
    score: int
    status: str
    total_time: int
    is_bot: bool
    online: bool
