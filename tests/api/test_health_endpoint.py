from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import make_principal


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests, Redis is not configured
    assert data["checks"]["redis"] == "not_configured"
    assert data["tiers"] == {"tenant": "idle", "year": "idle", "term": "idle"}


def test_health_reports_settled_tiers(client: TestClient, auth) -> None:
    auth.sign_in(make_principal("teacher"))
    client.post("/v1/dashboard/sync")
    data = client.get("/health").json()
    assert data["tiers"] == {"tenant": "ready", "year": "ready", "term": "ready"}
