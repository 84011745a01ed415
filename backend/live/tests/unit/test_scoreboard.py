"""Tests for ScoreBoard and SessionRegistry."""

import asyncio

from live.board.models import placeholder_avatar
from live.board.registry import SessionRegistry
from live.board.scoreboard import ScoreBoard


class TestPlaceholderAvatar:
    def test_seeded_by_quoted_name(self):
        assert placeholder_avatar("Ana María") == "https://api.dicebear.com/7.x/bottts/svg?seed=Ana%20Mar%C3%ADa"


class TestScoreBoard:
    def test_upsert_creates_profile_with_defaults(self):
        board = ScoreBoard()

        profile = board.upsert("alice")

        assert profile.display_name == "alice"
        assert profile.avatar_url == placeholder_avatar("alice")
        assert profile.score == 0
        assert profile.status == "Joined"
        assert profile.is_bot is False
        assert "alice" in board
        assert len(board) == 1

    def test_rejoin_keeps_score_and_status(self):
        board = ScoreBoard()
        board.upsert("alice")
        board.merge("alice", {"score": 40, "status": "Round 2"})

        profile = board.upsert("alice")

        assert profile.score == 40
        assert profile.status == "Round 2"
        assert len(board) == 1

    def test_rejoin_overwrites_avatar_only_when_given(self):
        board = ScoreBoard()
        board.upsert("alice", "https://img/a.png")

        assert board.upsert("alice").avatar_url == "https://img/a.png"
        assert board.upsert("alice", "https://img/b.png").avatar_url == "https://img/b.png"

    def test_merge_ignores_unknown_and_none(self):
        board = ScoreBoard()
        board.upsert("alice")

        profile = board.merge("alice", {"score": 12, "status": None, "is_bot": True, "display_name": "eve"})

        assert profile is not None
        assert profile.score == 12
        assert profile.status == "Joined"
        assert profile.is_bot is False
        assert profile.display_name == "alice"

    def test_merge_unknown_player(self):
        assert ScoreBoard().merge("ghost", {"score": 1}) is None

    def test_ranked_rows(self):
        board = ScoreBoard()
        board.upsert("alice")
        board.upsert("bob")
        board.upsert("carol")
        board.merge("alice", {"score": 50, "total_time": 9000})
        board.merge("bob", {"score": 50, "total_time": 4000})
        board.merge("carol", {"score": 70})

        rows = board.ranked(online={"bob"})

        assert [(r.rank, r.name, r.score) for r in rows] == [(1, "carol", 70), (2, "bob", 50), (3, "alice", 50)]
        assert [r.online for r in rows] == [False, True, False]

    def test_ranked_empty(self):
        assert ScoreBoard().ranked() == []


class TestSessionRegistry:
    def test_bind_resolve_unbind(self):
        registry = SessionRegistry()
        registry.bind("conn-1", "alice")

        assert registry.resolve("conn-1") == "alice"
        assert registry.online_names() == {"alice"}
        assert registry.unbind("conn-1") == "alice"
        assert registry.resolve("conn-1") is None
        assert registry.unbind("conn-1") is None

    def test_two_connections_one_player(self):
        registry = SessionRegistry()
        registry.bind("conn-1", "alice")
        registry.bind("conn-2", "alice")
        registry.unbind("conn-1")

        assert registry.online_names() == {"alice"}
        assert registry.connection_count == 1

    async def test_remembers_session_task(self):
        registry = SessionRegistry()

        async def resolve():
            return "session-1"

        task = asyncio.create_task(resolve())
        registry.remember_session("alice", task)

        assert registry.session_task("alice") is task
        assert await task == "session-1"
        assert registry.session_task("bob") is None
