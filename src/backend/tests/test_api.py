"""Tests for the HTTP surface."""
import httpx
import pytest
from fastapi.testclient import TestClient

from refiner.agent.orchestrator import RefinementOrchestrator
from refiner.api.refine import get_orchestrator
from refiner.main import app
from refiner.services.oracle import OracleGateway
from tests.scripted import ScriptedTransport, critique_json

TEXT = "Write a function that validates email addresses and returns a boolean result."


@pytest.fixture
def transport():
    return ScriptedTransport(default=lambda request: critique_json(9.0))


@pytest.fixture
def client(transport):
    gateway = OracleGateway(transport=transport, timeout_seconds=5)
    app.dependency_overrides[get_orchestrator] = lambda: RefinementOrchestrator(gateway)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_config_check_hides_secrets(client):
    body = client.get("/api/health/config").json()
    assert "oracle_api_key" not in body
    assert isinstance(body["oracle_api_key_set"], bool)


def test_list_modes(client):
    body = client.get("/api/modes").json()
    assert set(body) == {"fast", "balanced", "thorough", "research"}
    assert body["fast"]["max_oracle_calls"] == 2


def test_refine(client, transport):
    response = client.post(
        "/api/refine",
        json={"text": TEXT, "mode": "balanced", "strategy": "self_refine",
              "overrides": {"features": {"dynamic_analysis": False}}},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["strategy"] == "self_refine"
    assert body["self_refine"]["convergence_reason"] == "quality_achieved"
    assert body["self_refine"]["iterations"][0]["critique"]["overall_score"] == 9.0
    assert len(transport.requests) == 1


def test_invalid_configuration_is_422(client, transport):
    response = client.post("/api/refine", json={"text": TEXT, "overrides": {"max_iterations": 99}})
    assert response.status_code == 422
    assert response.json()["detail"] == ["max_iterations must be between 1 and 10"]
    assert transport.requests == []


def test_empty_text_is_422(client):
    assert client.post("/api/refine", json={"text": ""}).status_code == 422


async def test_refine_over_asgi(transport):
    gateway = OracleGateway(transport=transport, timeout_seconds=5)
    app.dependency_overrides[get_orchestrator] = lambda: RefinementOrchestrator(gateway)
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/refine", json={"text": TEXT, "mode": "fast"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["strategy"] == "progressive"
    assert len(response.json()["progressive"]["layer_results"]) == 5


@pytest.mark.parametrize("features", [["dynamic_analysis"], True, {"dynamic_analysis": "yes"}])
def test_malformed_feature_override_is_422(client, transport, features):
    response = client.post("/api/refine", json={"text": TEXT, "overrides": {"features": features}})
    assert response.status_code == 422
    assert "true" in response.json()["detail"][0]
    assert transport.requests == []
