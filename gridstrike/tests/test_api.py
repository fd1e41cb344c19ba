"""
Tests for API layer.

Tests:
- API service methods
- HTTP endpoints and error codes
- Turn lifecycle via API
"""

import pytest
from fastapi.testclient import TestClient

from ..api.app import STATUS_BY_KIND, create_app
from ..api.schemas import (
    ActionKindName,
    CreateMatchRequest,
    MatchStatus,
    PositionModel,
    SideName,
    SubmitActionRequest,
)
from ..api.service import APIService
from ..errors import AlreadySubmittedError, ErrorKind, NotFoundError, UnauthenticatedError


def action_request(piece_id, kind, col, row, turn=None):
    return SubmitActionRequest(
        piece_id=piece_id,
        kind=ActionKindName(kind),
        destination=PositionModel(col=col, row=row),
        turn=turn,
    )


class VanishingSocket:
    """Socket whose connection handler unregisters it during a send."""

    def __init__(self, connections, user_id):
        self.connections = connections
        self.user_id = user_id

    async def send_json(self, data):
        self.connections.remove((self.user_id, self))
        raise RuntimeError("socket closed")


class TestAPIService:
    """Tests for APIService."""

    @pytest.fixture
    def service(self):
        """Create a fresh API service."""
        return APIService()

    @pytest.fixture
    def match_id(self, service):
        response = service.create_match(CreateMatchRequest(
            host_user_id="alice", guest_user_id="bob", match_id="m1",
        ))
        return response.match_id

    def test_create_match(self, service):
        response = service.create_match(CreateMatchRequest(
            host_user_id="alice", guest_user_id="bob",
        ))

        assert response.match_id
        assert response.status == MatchStatus.WAITING_FOR_ACTIONS
        assert response.turn_counter == 0
        assert response.winner is None

    def test_get_nonexistent_match(self, service):
        with pytest.raises(NotFoundError):
            service.get_match("nonexistent-id")

    def test_end_match(self, service, match_id):
        assert service.end_match(match_id)
        assert service.list_matches() == []

    def test_get_state_is_filtered(self, service, match_id):
        state = service.get_state(match_id, "alice")

        assert state.side == SideName.HOST
        assert state.player_role == "player1"
        assert state.state.cards["host_0"].hp == 3
        assert state.state.cards["guest_0"].is_hidden
        assert state.state.cards["guest_0"].hp == 0

    def test_get_state_requires_user(self, service, match_id):
        with pytest.raises(UnauthenticatedError):
            service.get_state(match_id, None)

    def test_submit_waits_for_opponent(self, service, match_id):
        response = service.submit_action(match_id, "alice", action_request("host_0", "move", 0, 5))

        assert response.waiting_for_opponent
        assert not response.turn_completed
        assert response.animation_commands == []

    def test_submit_completes_turn(self, service, match_id):
        service.submit_action(match_id, "alice", action_request("host_0", "move", 0, 5))
        response = service.submit_action(match_id, "bob", action_request("guest_0", "move", 0, 1))

        assert response.turn_completed
        assert response.turn_counter == 1
        assert [c["type"] for c in response.animation_commands] == ["move", "move"]
        assert response.final_state["guest_0"]["row"] == 1
        # host pieces are still stealthed for the guest
        assert response.final_state["host_0"]["hp"] == 0
        assert response.state.cards["host_0"].is_hidden

    def test_duplicate_submission(self, service, match_id):
        service.submit_action(match_id, "alice", action_request("host_0", "move", 0, 5))
        with pytest.raises(AlreadySubmittedError):
            service.submit_action(match_id, "alice", action_request("host_1", "move", 1, 5))

    def test_animation_complete(self, service, match_id):
        service.submit_action(match_id, "alice", action_request("host_0", "move", 0, 5))
        service.submit_action(match_id, "bob", action_request("guest_0", "move", 0, 1))

        first = service.notify_animation_complete(match_id, "alice")
        second = service.notify_animation_complete(match_id, "bob")

        assert first.waiting_for_opponent
        assert second.next_turn_ready

    def test_last_action_shows_own_action_only(self, service, match_id):
        service.submit_action(match_id, "alice", action_request("host_0", "move", 0, 5))
        service.submit_action(match_id, "bob", action_request("guest_0", "move", 0, 1))

        state = service.get_state(match_id, "bob")

        assert state.last_action.turn == 1
        assert state.last_action.own_action["pieceId"] == "guest_0"
        assert len(state.last_action.commands) == 2


class TestHTTP:
    """Tests for the FastAPI application."""

    @pytest.fixture
    def client(self):
        app = create_app(APIService(), reap_interval=None)
        return TestClient(app)

    @pytest.fixture
    def match_id(self, client):
        response = client.post("/api/v1/matches", json={
            "host_user_id": "alice",
            "guest_user_id": "bob",
            "match_id": "m1",
        })
        assert response.status_code == 201
        return response.json()["match_id"]

    def submit(self, client, match_id, user_id, body):
        return client.post(
            f"/api/v1/matches/{match_id}/actions",
            json=body,
            headers={"X-User-Id": user_id} if user_id else {},
        )

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_list_matches(self, client, match_id):
        response = client.get("/api/v1/matches")
        assert response.json() == {"matches": ["m1"], "count": 1}

    def test_get_unknown_match(self, client):
        response = client.get("/api/v1/matches/nope")
        assert response.status_code == 404
        assert response.json()["error_code"] == "not-found"

    def test_state_uses_stored_field_names(self, client, match_id):
        response = client.get(f"/api/v1/matches/{match_id}/state", headers={"X-User-Id": "bob"})

        assert response.status_code == 200
        body = response.json()
        assert body["side"] == "guest"
        assert body["state"]["gameOver"] is False
        assert body["state"]["cards"]["host_0"]["isHidden"] is True
        assert body["state"]["cards"]["guest_0"]["maxHp"] == 3

    def test_state_without_user(self, client, match_id):
        response = client.get(f"/api/v1/matches/{match_id}/state")
        assert response.status_code == 401
        assert response.json()["error_code"] == "unauthenticated"

    def test_state_for_outsider(self, client, match_id):
        response = client.get(f"/api/v1/matches/{match_id}/state", headers={"X-User-Id": "eve"})
        assert response.status_code == 403
        assert response.json()["error_code"] == "permission-denied"

    def test_full_turn(self, client, match_id):
        first = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "move", "destination": {"col": 0, "row": 5},
        })
        second = self.submit(client, match_id, "bob", {
            "piece_id": "guest_0", "kind": "move", "destination": {"col": 0, "row": 1},
        })

        assert first.status_code == 200
        assert first.json()["waiting_for_opponent"] is True
        assert second.json()["turn_completed"] is True
        assert second.json()["animation_commands"][0]["cardId"] == "host_0"

        locked = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "move", "destination": {"col": 0, "row": 4},
        })
        assert locked.status_code == 409
        assert locked.json()["error_code"] == "failed-precondition"

        for user_id in ("alice", "bob"):
            ready = client.post(
                f"/api/v1/matches/{match_id}/animation-complete",
                headers={"X-User-Id": user_id},
            )
        assert ready.json()["next_turn_ready"] is True

    def test_duplicate_submission(self, client, match_id):
        body = {"piece_id": "host_0", "kind": "move", "destination": {"col": 0, "row": 5}}
        self.submit(client, match_id, "alice", body)
        response = self.submit(client, match_id, "alice", body)

        assert response.status_code == 409
        assert response.json()["error_code"] == "already-submitted"

    def test_unknown_kind(self, client, match_id):
        response = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "teleport", "destination": {"col": 0, "row": 5},
        })
        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid-argument"

    def test_out_of_bounds_destination(self, client, match_id):
        response = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "move", "destination": {"col": 3, "row": 5},
        })
        assert response.status_code == 400

    def test_stale_turn(self, client, match_id):
        response = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "move", "destination": {"col": 0, "row": 5}, "turn": 4,
        })
        assert response.status_code == 409

    def test_opponents_piece(self, client, match_id):
        response = self.submit(client, match_id, "alice", {
            "piece_id": "guest_0", "kind": "move", "destination": {"col": 0, "row": 1},
        })
        assert response.status_code == 403

    def test_end_match(self, client, match_id):
        response = client.delete(f"/api/v1/matches/{match_id}")
        assert response.json() == {"success": True, "match_id": "m1"}
        assert client.get(f"/api/v1/matches/{match_id}").status_code == 404

    def test_websocket_initial_state(self, client, match_id):
        with client.websocket_connect(f"/api/v1/matches/{match_id}/ws?user_id=alice") as ws:
            message = ws.receive_json()
            assert message["type"] == "state_update"
            assert message["payload"]["side"] == "host"

            ws.send_text('{"type": "ping"}')
            assert ws.receive_json() == {"type": "pong"}

    def test_socket_closing_mid_broadcast(self, client, match_id):
        """A socket that unregisters itself while a send is in flight does not break the turn."""
        connections = client.app.state.ws_connections.setdefault(match_id, [])
        for user_id in ("alice", "bob"):
            connections.append((user_id, VanishingSocket(connections, user_id)))

        response = self.submit(client, match_id, "alice", {
            "piece_id": "host_0", "kind": "move", "destination": {"col": 0, "row": 5},
        })

        assert response.status_code == 200
        assert connections == []

    def test_reaper_stops_with_app(self):
        with TestClient(create_app(APIService(), reap_interval=60)) as client:
            assert client.get("/health").status_code == 200

    def test_every_error_kind_has_a_status(self):
        assert set(STATUS_BY_KIND) == set(ErrorKind)
