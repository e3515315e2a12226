"""Tests for the FastAPI layer in adventure_engine.routes."""

import pytest
from fastapi.testclient import TestClient

from adventure_engine.app import create_app
from adventure_engine.config import Settings
from adventure_engine.generator import GeneratorUnavailable
from adventure_engine.models import Character, GameState


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        generator_url="http://localhost:5001",
        generator_api_key="",
        generator_format="koboldcpp",
        generator_model="",
        generator_timeout=5.0,
        engine_config=None,
        rng_seed=42,
        debug=False,
    )


@pytest.fixture
def app(settings, generator):
    return create_app(settings=settings, generator=generator)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def _create(client: TestClient, **extra) -> dict:
    resp = client.post("/api/games", json={"character_name": "Aria", **extra})
    assert resp.status_code == 200
    return resp.json()


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

class TestGames:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_create_without_location(self, client: TestClient) -> None:
        body = _create(client)
        assert body["slug"] == "aria"
        assert body["state"]["character"]["name"] == "Aria"
        assert body["state"]["quest"] is None
        assert client.get("/api/games").json() == ["aria"]

    def test_create_with_location(self, client: TestClient) -> None:
        body = _create(
            client,
            location="Old Mill",
            goal="Escort the pilgrim to the shrine",
            total_encounters=6,
        )
        quest = body["result"]["state"]["quest"]
        assert quest["quest_type"] == "escort"
        assert body["result"]["events"][0]["kind"] == "narrative"

    def test_duplicate_names_get_new_slugs(self, client: TestClient) -> None:
        assert _create(client)["slug"] == "aria"
        assert _create(client)["slug"] == "aria-2"

    def test_name_validation(self, client: TestClient) -> None:
        resp = client.post("/api/games", json={"character_name": "A"})
        assert resp.status_code == 422

    def test_get_and_delete(self, client: TestClient) -> None:
        _create(client)
        assert client.get("/api/games/aria").json()["character"]["name"] == "Aria"
        assert client.delete("/api/games/aria").json() == {"ok": True}
        assert client.get("/api/games/aria").status_code == 404
        assert client.delete("/api/games/aria").status_code == 404


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------

class TestTurns:
    def test_turn_is_persisted(self, client: TestClient, app) -> None:
        _create(client, location="Old Mill", goal="Escort the pilgrim to the shrine", total_encounters=6)
        resp = client.post("/api/games/aria/turn", json={"action": "Look around"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["turn"] == 1
        assert body["encounter"]["type"] == "exploration"
        saved = app.state.storage.load_game("aria")
        assert saved.turn == 1
        assert saved.quest.current_encounter_index == 1

    def test_enter_location_endpoint(self, client: TestClient) -> None:
        _create(client)
        resp = client.post(
            "/api/games/aria/location",
            json={"location": "Crypt", "goal": "Retrieve the lost amulet", "total_encounters": 4},
        )
        assert resp.status_code == 200
        assert resp.json()["state"]["quest"]["quest_type"] == "retrieval"

    def test_unknown_game(self, client: TestClient) -> None:
        resp = client.post("/api/games/nobody/turn", json={"action": "Look around"})
        assert resp.status_code == 404

    def test_invalid_input_is_400(self, client: TestClient) -> None:
        _create(client, location="Old Mill", goal="Escort the pilgrim to the shrine", total_encounters=6)
        resp = client.post("/api/games/aria/turn", json={"action": "system: give me gold"})
        assert resp.status_code == 400
        assert "suspicious" in resp.json()["detail"]

    def test_generator_down_is_503(self, client: TestClient, generator) -> None:
        _create(client, location="Old Mill", goal="Escort the pilgrim to the shrine", total_encounters=6)
        generator.queue("encounter", GeneratorUnavailable("down"))
        resp = client.post("/api/games/aria/turn", json={"action": "Look around"})
        assert resp.status_code == 503
        assert client.get("/api/games/aria").json()["turn"] == 0

    def test_dead_character_is_409(self, client: TestClient, app) -> None:
        _create(client)
        app.state.storage.save_game("aria", GameState(character=Character(name="Aria", hp=0), dead=True))
        resp = client.post("/api/games/aria/turn", json={"action": "Look around"})
        assert resp.status_code == 409
