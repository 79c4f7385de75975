"""
Integration test: HTTP and WebSocket API.

Runs the FastAPI app through its lifespan with a fresh DI container per
test.
"""

import pytest
from fastapi.testclient import TestClient

from engine.config import reset_config
from engine.di_container import cleanup_container
from engine.main import app

C_MAJOR = [40, 44, 47]
F_MAJOR = [45, 49, 52]
G_MAJOR = [47, 51, 54]


@pytest.fixture
def client():
    cleanup_container()
    reset_config()
    with TestClient(app) as test_client:
        yield test_client
    cleanup_container()


class TestChordEndpoints:
    """Test analysis, validation and scale ranking."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_analyze(self, client):
        response = client.post("/api/chords/analyze", json={"notes": C_MAJOR})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["best_match"]["display_name"] == "C"
        assert data["confidence"] == pytest.approx(1.0)

    def test_analyze_rejects_out_of_range(self, client):
        response = client.post("/api/chords/analyze", json={"notes": [40, 100]})
        assert response.status_code == 400

    def test_analyze_schema_validation(self, client):
        response = client.post("/api/chords/analyze", json={"notes": C_MAJOR, "context_key": 12})
        assert response.status_code == 422

    def test_validate_explicit_progression(self, client):
        response = client.post(
            "/api/chords/validate",
            json={"progression": [C_MAJOR, F_MAJOR, G_MAJOR, C_MAJOR]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["chords"] == ["C", "F", "G", "C"]
        assert data["score"] == 95
        assert data["valid"] is True
        assert data["unrecognized"] == []

    def test_validate_history(self, client):
        for notes in (C_MAJOR, G_MAJOR):
            client.post("/api/chords/analyze", json={"notes": notes})

        progression = client.get("/api/chords/progression").json()["progression"]
        assert [chord["display_name"] for chord in progression] == ["C", "G"]

        data = client.post("/api/chords/validate", json={}).json()
        assert data["chords"] == ["C", "G"]

        client.delete("/api/chords/progression")
        assert client.get("/api/chords/progression").json()["progression"] == []

    def test_rank_scales(self, client):
        response = client.get("/api/scales/rank", params={"notes": "40,42,44,45,47,49,51"})

        assert response.status_code == 200
        names = [fit["display_name"] for fit in response.json()["scales"]]
        assert names
        assert all(fit["coverage"] == 1.0 for fit in response.json()["scales"])

    def test_rank_scales_bad_note_list(self, client):
        response = client.get("/api/scales/rank", params={"notes": "40,abc"})
        assert response.status_code == 400


class TestSequencerEndpoints:
    """Test input parsing, track editing and transport."""

    def test_parse_input(self, client):
        response = client.post("/api/input/parse", json={"text": "C4+E4+G4@1.0v0.8"})

        assert response.status_code == 200
        data = response.json()
        assert data["parsed"]["chords"][0]["note_numbers"] == C_MAJOR
        assert data["validation"]["valid"] is True

    def test_parse_rejects_blank_text(self, client):
        response = client.post("/api/input/parse", json={"text": "   "})
        assert response.status_code == 422

    def test_sequence_track_and_timeline(self, client):
        response = client.post("/api/tracks/0/sequence", json={"text": "40,44,47"})
        assert response.status_code == 200
        assert response.json()["steps_written"] == 3

        steps = client.get("/api/tracks/0/timeline").json()["steps"]
        assert [s["step"] for s in steps] == [0, 1, 2]

    def test_sequence_unknown_track(self, client):
        response = client.post("/api/tracks/42/sequence", json={"text": "40"})
        assert response.status_code == 404

    def test_sequence_failure_is_reported(self, client):
        response = client.post("/api/tracks/0/sequence", json={"text": "xyz"})

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_track_settings(self, client):
        response = client.patch("/api/tracks/1", json={"muted": True, "volume": 0.4})

        assert response.status_code == 200
        assert response.json() == {"index": 1, "muted": True, "volume": 0.4}
        assert client.patch("/api/tracks/9", json={"muted": True}).status_code == 404

    def test_add_track(self, client):
        response = client.post("/api/tracks")
        assert response.status_code == 200
        assert response.json()["index"] == 4

    def test_pattern_export_import(self, client):
        client.post("/api/tracks/0/sequence", json={"text": "40,44"})
        document = client.get("/api/pattern").json()

        client.post("/api/tracks/0/sequence", json={"text": "50"})
        response = client.put("/api/pattern", json=document)

        assert response.status_code == 200
        steps = client.get("/api/tracks/0/timeline").json()["steps"]
        assert [s["note_numbers"] for s in steps] == [[40], [44]]

    def test_import_malformed_pattern(self, client):
        response = client.put("/api/pattern", json={"bpm": 120})
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "document",
        [
            {"id": "p", "bpm": 120, "step_count": 4, "tracks": [{"steps": []}]},
            {"id": "p", "bpm": 120, "step_count": 4, "tracks": {"0": "not a track"}},
            {
                "id": "p",
                "bpm": 120,
                "step_count": 4,
                "tracks": {"0": {"steps": [{"note_numbers": [500], "active": True}]}},
            },
        ],
    )
    def test_import_wrong_shapes_is_client_error(self, client, document):
        response = client.put("/api/pattern", json=document)
        assert response.status_code == 400

    def test_transport_cycle(self, client):
        assert client.post("/api/transport/play").json()["state"] == "playing"
        assert client.post("/api/transport/pause").json()["state"] == "paused"
        assert client.post("/api/transport/pause").status_code == 409
        assert client.post("/api/transport/resume").json()["state"] == "playing"
        assert client.post("/api/transport/stop").json()["state"] == "stopped"
        assert client.post("/api/transport/stop").json()["state"] == "stopped"

    def test_tempo_and_loop(self, client):
        assert client.post("/api/transport/tempo", json={"bpm": 90}).json()["bpm"] == 90.0
        assert client.post("/api/transport/tempo", json={"bpm": 0}).status_code == 422
        assert client.post("/api/transport/loop", json={"loop": False}).json()["loop"] is False

        status = client.get("/api/status").json()
        assert status["transport"]["bpm"] == 90.0
        assert status["transport"]["loop"] is False

    def test_metrics(self, client):
        data = client.get("/api/metrics").json()
        assert "tick_drift_ms" in data
        assert data["failed_emissions"] == 0


class TestNoteStreamSocket:
    """Test the WebSocket note stream handshake."""

    def test_welcome_and_ping(self, client):
        with client.websocket_connect("/ws/notes") as websocket:
            welcome = websocket.receive_json()
            assert welcome["type"] == "welcome"
            assert welcome["client_id"].startswith("client_")

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json()["type"] == "pong"
