from __future__ import annotations

from fastapi.testclient import TestClient

from together.config import SyncSettings
from together.main import create_app
from together.models.sync import PlayerState
from together.services.player import ClockPlayer
from together.services.session import SessionController
from tests._fakes import FakeApi, FakeChannel, FakeClock


def _client():
    clock = FakeClock()
    controller = SessionController(SyncSettings(), FakeApi(), channel_factory=FakeChannel, clock=clock)
    controller.attach_player(ClockPlayer(clock=clock))
    return TestClient(create_app(controller=controller, settings=SyncSettings())), controller, clock


def test_session_view_starts_idle():
    client, _, _ = _client()

    body = client.get("/api/session").json()

    assert body["state"] == "idle"
    assert body["joined"] is False
    assert body["canTerminate"] is False
    assert body["currentVideo"]["videoId"] == "dQw4w9WgXcQ"


def test_join_validation_error_is_400():
    client, controller, _ = _client()

    response = client.post("/api/session/join", json={"username": "bob", "roomCode": "ab12c"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Room code must be 6 letters/numbers"
    assert controller.channel is None


def test_terminate_is_refused_for_non_host():
    client, _, _ = _client()

    response = client.post("/api/session/terminate")

    assert response.status_code == 400
    assert response.json()["detail"] == "Only the host can terminate the room"


def test_player_actions_drive_clock_player():
    client, controller, clock = _client()

    assert client.post("/api/player/seek", params={"seconds": 12}).json()["time"] == 12.0
    assert client.post("/api/player/play").json()["state"] == "playing"
    clock.advance(2000)
    assert controller.player.get_time() == 14.0
    assert client.post("/api/player/pause").json() == {"time": 14.0, "state": "paused"}
    assert controller.player.get_state() == PlayerState.PAUSED

    assert client.post("/api/player/rewind").status_code == 404
    assert client.post("/api/player/seek").status_code == 400
