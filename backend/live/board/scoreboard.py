"""In-memory scoreboard of every player seen by this process."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from live.board.models import LeaderboardRow, PlayerProfile, placeholder_avatar
from shared.ranking import rank_by_score

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

PROGRESS_FIELDS = frozenset({"score", "status", "total_time", "avatar_url"})


class ScoreBoard:
    """display name -> PlayerProfile, with ranking.

    Purely state management; mutated only from the event loop thread.
    """

    def __init__(self) -> None:
        self._profiles: dict[str, PlayerProfile] = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, display_name: object) -> bool:
        return display_name in self._profiles

    def get(self, display_name: str) -> PlayerProfile | None:
        return self._profiles.get(display_name)

    def upsert(self, display_name: str, avatar_url: str | None = None, *, is_bot: bool = False) -> PlayerProfile:
        """Return the profile for a name, creating it on first sight.

        An existing profile keeps its score and status; only a provided avatar
        replaces the stored one.
        """
        profile = self._profiles.get(display_name)
        if profile is None:
            profile = PlayerProfile(
                display_name=display_name,
                avatar_url=avatar_url or placeholder_avatar(display_name),
                is_bot=is_bot,
            )
            self._profiles[display_name] = profile
        elif avatar_url:
            profile.avatar_url = avatar_url
        return profile

    def merge(self, display_name: str, fields: Mapping[str, Any]) -> PlayerProfile | None:
        """Overwrite the given progress fields. Unknown fields and None values are ignored."""
        profile = self._profiles.get(display_name)
        if profile is None:
            return None
        for key, value in fields.items():
            if key in PROGRESS_FIELDS and value is not None:
                setattr(profile, key, value)
        return profile

    def ranked(self, online: Collection[str] = ()) -> list[LeaderboardRow]:
        """Full leaderboard, recomputed from the current profiles."""
        ranked = rank_by_score(
            self._profiles.values(),
            score=lambda p: p.score,
            elapsed=lambda p: p.total_time,
            name=lambda p: p.display_name,
        )
        return [
            LeaderboardRow(
                rank=rank,
                name=profile.display_name,
                avatar=profile.avatar_url,
                score=profile.score,
                status=profile.status,
                total_time=profile.total_time,
                is_bot=profile.is_bot,
                online=profile.display_name in online,
            )
            for rank, profile in ranked
        ]
