"""Integration tests for the /ws/leaderboard WebSocket."""

import json

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from server.app import create_app
from server.settings import ServerSettings
from sessions.tests.mocks.session_repository import InMemorySessionRepository
from shared.dal.models import SessionStatus
from shared.supabase import SupabaseSettings


def _make_app(repository, **settings_kwargs):
    return create_app(
        settings=ServerSettings(**settings_kwargs),
        supabase_settings=SupabaseSettings(),
        session_repository=repository,
    )


def _receive_types(ws, count):
    """Receive ``count`` messages keyed by type; join acks may interleave with broadcasts."""
    messages = [ws.receive_json() for _ in range(count)]
    return {m["type"]: m for m in messages}


def _names(update):
    return [(row["rank"], row["name"], row["score"]) for row in update["leaderboard"]]


@pytest.fixture
def repository():
    return InMemorySessionRepository()


@pytest.fixture
def client(repository):
    with TestClient(_make_app(repository)) as c:
        yield c


class TestLiveWebSocket:
    def test_snapshot_on_connect(self, client):
        with client.websocket_connect("/ws/leaderboard") as ws:
            assert ws.receive_json() == {"type": "leaderboard_update", "leaderboard": []}

    def test_join_broadcasts_and_acks_session(self, client, repository):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "join", "name": "alice"}))

            messages = _receive_types(ws, 2)

        row = messages["leaderboard_update"]["leaderboard"][0]
        assert row["name"] == "alice"
        assert row["status"] == "Joined"
        assert row["online"] is True
        assert row["avatar"].startswith("https://api.dicebear.com/7.x/bottts/svg?seed=alice")
        session_id = messages["session_created"]["session_id"]
        assert session_id in repository.sessions
        assert messages["session_created"]["durable"] is True

    def test_ping_pong(self, client):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json() == {"type": "pong"}

    def test_invalid_message_keeps_connection_open(self, client):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"
            ws.send_text(json.dumps({"type": "join"}))
            assert ws.receive_json()["type"] == "error"
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json() == {"type": "pong"}

    def test_binary_frame_gets_error_and_connection_stays_open(self, client):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01")
            assert ws.receive_json() == {"type": "error", "message": "Binary frames are not supported"}
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json() == {"type": "pong"}

    def test_progress_before_join_is_ignored(self, client):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "update_progress", "score": 50}))
            ws.send_text(json.dumps({"type": "ping"}))
            assert ws.receive_json() == {"type": "pong"}

    def test_two_players_full_flow(self, client, repository):
        with client.websocket_connect("/ws/leaderboard") as alice:
            alice.receive_json()
            alice.send_text(json.dumps({"type": "join", "name": "alice"}))
            _receive_types(alice, 2)

            with client.websocket_connect("/ws/leaderboard") as bob:
                snapshot = bob.receive_json()
                assert _names(snapshot) == [(1, "alice", 0)]

                bob.send_text(json.dumps({"type": "join", "name": "bob", "avatar": "https://img/bob.png"}))
                bob_messages = _receive_types(bob, 2)
                assert {row["name"] for row in bob_messages["leaderboard_update"]["leaderboard"]} == {"alice", "bob"}
                assert alice.receive_json()["type"] == "leaderboard_update"

                alice.send_text(json.dumps({"type": "update_progress", "score": 30, "status": "Round 1"}))
                update = bob.receive_json()
                assert _names(update)[0] == (1, "alice", 30)
                assert alice.receive_json() == update

                alice.send_text(
                    json.dumps(
                        {
                            "type": "round_complete",
                            "round": 1,
                            "entries": [{"subRoundId": "1a", "prompt": "p", "output": "o", "score": 30}],
                            "score": 30,
                            "time_taken": 40_000,
                            "total_score": 30,
                        },
                    ),
                )
                update = bob.receive_json()
                alice.receive_json()
                alice_row = update["leaderboard"][0]
                assert alice_row["status"] == "Completed Round 1"

                bob.send_text(json.dumps({"type": "game_complete", "total_score": 45, "total_time": 90_000}))
                update = alice.receive_json()
                bob.receive_json()
                assert _names(update) == [(1, "bob", 45), (2, "alice", 30)]
                assert update["leaderboard"][0]["status"] == "Finished"

            # bob's disconnect sends nothing; his profile stays but goes offline
            alice.send_text(json.dumps({"type": "ping"}))
            assert alice.receive_json() == {"type": "pong"}
            rows = client.app.state.live_board.leaderboard()
            assert [(r.name, r.online) for r in rows] == [("bob", False), ("alice", True)]

        # leaving the client context drains persistence
        by_name = {s.player_name: s for s in repository.sessions.values()}
        assert by_name["alice"].rounds_completed == 1
        assert by_name["alice"].round1_data[0].sub_round_id == "1a"
        assert by_name["bob"].status is SessionStatus.FINISHED
        assert by_name["bob"].total_score == 45

    def test_rejoin_same_name_reuses_session(self, client, repository):
        with client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "join", "name": "alice"}))
            first = _receive_types(ws, 2)["session_created"]["session_id"]
            ws.send_text(json.dumps({"type": "update_progress", "score": 20}))
            ws.receive_json()

        with client.websocket_connect("/ws/leaderboard") as ws:
            assert _names(ws.receive_json()) == [(1, "alice", 20)]
            ws.send_text(json.dumps({"type": "join", "name": "alice"}))
            messages = _receive_types(ws, 2)

        assert messages["session_created"]["session_id"] == first
        assert len(repository.sessions) == 1
        assert _names(messages["leaderboard_update"]) == [(1, "alice", 20)]


class TestOriginCheck:
    def test_rejects_other_origin(self, repository):
        app = _make_app(repository, ws_allowed_origin="http://promptify.test")
        with TestClient(app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info, client.websocket_connect("/ws/leaderboard"):
                pass
        assert exc_info.value.code == 4003

    def test_accepts_configured_origin(self, repository):
        app = _make_app(repository, ws_allowed_origin="http://promptify.test")
        with (
            TestClient(app) as client,
            client.websocket_connect("/ws/leaderboard", headers={"origin": "http://promptify.test"}) as ws,
        ):
            assert ws.receive_json()["type"] == "leaderboard_update"


class TestWithoutStore:
    def test_live_board_works_with_local_sessions(self):
        app = create_app(settings=ServerSettings(), supabase_settings=SupabaseSettings())
        with TestClient(app) as client, client.websocket_connect("/ws/leaderboard") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"type": "join", "name": "alice"}))
            messages = _receive_types(ws, 2)

        assert messages["session_created"]["session_id"].startswith("local-")
        assert messages["session_created"]["durable"] is False
