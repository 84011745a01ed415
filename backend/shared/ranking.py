"""Leaderboard ordering shared by the live scoreboard and the persisted leaderboard."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

T = TypeVar("T")


def rank_by_score(
    items: Iterable[T],
    *,
    score: Callable[[T], int],
    elapsed: Callable[[T], int],
    name: Callable[[T], str],
) -> list[tuple[int, T]]:
    """Order by score descending, then elapsed time ascending, and number from 1.

    Name is the last key so equal score and time still produce a stable order.
    Ranks are positional: contiguous, no shared ranks for ties.
    """
    ordered = sorted(items, key=lambda item: (-score(item), elapsed(item), name(item).casefold()))
    return list(enumerate(ordered, start=1))
