"""
test_api.py — HTTP adapter through FastAPI's TestClient.

The app is built with an injected ServiceContainer: in-memory SQLite,
caching disabled, webhook target served by httpx.MockTransport.

Covers:
    • Auth: Bearer / X-API-Key accepted, missing or wrong key → 401,
      public check and health routes
    • Incident CRUD status codes and error envelope
    • Pagination echo, stats window validation, active list
    • Location check scenario and background webhook delivery
    • Liveness / readiness probes
"""

from __future__ import annotations

import json
import uuid
from typing import List
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.core.cache import RedisCache
from backend.app.core.config import Settings
from backend.app.core.container import ServiceContainer
from backend.app.incidents.manager import MAX_PAGE
from backend.app.main import create_app

from tests.conftest import make_sqlite_engine

API_KEY = "test-key"
AUTH = {"Authorization": f"Bearer {API_KEY}"}
HOOK_URL = "http://hooks.test/geo"

MOSCOW_ZONE = {
    "title": "Gas leak",
    "description": "Evacuate the block",
    "latitude": 55.7558,
    "longitude": 37.6173,
    "radius": 100,
}


def _make_settings(**overrides) -> Settings:
    values = dict(
        API_KEY=API_KEY,
        WEBHOOK_URL=HOOK_URL,
        WEBHOOK_RETRY_DELAY_SECONDS=0.0,
        DATABASE_URL="sqlite+aiosqlite://",
        REDIS_ENABLED=False,
        SHUTDOWN_GRACE_SECONDS=2.0,
    )
    values.update(overrides)
    return Settings(**values)


def _make_app(hook_requests: List[dict], **overrides):
    def handler(request: httpx.Request) -> httpx.Response:
        hook_requests.append(json.loads(request.content))
        return httpx.Response(200)

    container = ServiceContainer.build(
        _make_settings(**overrides),
        engine=make_sqlite_engine(),
        cache=RedisCache(None),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return create_app(container)


@pytest.fixture
def hook_requests() -> List[dict]:
    return []


@pytest.fixture
def client(hook_requests):
    with TestClient(_make_app(hook_requests)) as c:
        yield c


def _create_zone(client: TestClient, **overrides) -> dict:
    resp = client.post("/api/v1/incidents", json={**MOSCOW_ZONE, **overrides}, headers=AUTH)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ═══════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════

class TestAuth:

    def test_missing_key(self, client):
        resp = client.get("/api/v1/incidents")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_key(self, client):
        resp = client.get("/api/v1/incidents", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_non_bearer_scheme_rejected(self, client):
        resp = client.get("/api/v1/incidents", headers={"Authorization": f"Basic {API_KEY}"})
        assert resp.status_code == 401

    def test_x_api_key_header(self, client):
        resp = client.get("/api/v1/incidents", headers={"X-API-Key": API_KEY})
        assert resp.status_code == 200

    def test_bearer_header(self, client):
        assert client.get("/api/v1/incidents", headers=AUTH).status_code == 200

    def test_check_and_health_are_public(self, client):
        check = client.post(
            "/api/v1/location/check",
            json={"user_id": "u", "latitude": 0, "longitude": 0},
        )
        assert check.status_code == 200
        assert client.get("/api/v1/system/health").status_code == 200

    def test_empty_configured_key_rejects_everything(self):
        with TestClient(_make_app([], API_KEY="")) as c:
            assert c.get("/api/v1/incidents", headers={"Authorization": "Bearer anything"}).status_code == 401
            assert c.get("/api/v1/incidents", headers={"X-API-Key": ""}).status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# Incidents
# ═══════════════════════════════════════════════════════════════════════════

class TestIncidentRoutes:

    def test_create_and_get(self, client):
        created = _create_zone(client)
        assert created["is_active"] is True
        assert created["radius"] == 100.0
        uuid.UUID(created["id"])

        resp = client.get(f"/api/v1/incidents/{created['id']}", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["title"] == "Gas leak"

    @pytest.mark.parametrize("overrides", [
        {"radius": 0},
        {"radius": -10},
        {"latitude": 91},
        {"longitude": -180.5},
        {"title": ""},
    ])
    def test_create_validation(self, client, overrides):
        resp = client.post("/api/v1/incidents", json={**MOSCOW_ZONE, **overrides}, headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_missing_field(self, client):
        body = {k: v for k, v in MOSCOW_ZONE.items() if k != "radius"}
        resp = client.post("/api/v1/incidents", json=body, headers=AUTH)
        assert resp.status_code == 400
        fields = [e["field"] for e in resp.json()["error"]["details"]["errors"]]
        assert "radius" in fields

    def test_get_unknown_is_404(self, client):
        resp = client.get(f"/api/v1/incidents/{uuid.uuid4()}", headers=AUTH)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    def test_error_body_names_request_outside_production(self, client):
        error = client.get(f"/api/v1/incidents/{uuid.uuid4()}", headers=AUTH).json()["error"]
        assert error["path"].startswith("/api/v1/incidents/")
        assert error["method"] == "GET"

    def test_error_body_hides_request_in_production(self):
        with TestClient(_make_app([], ENVIRONMENT="production")) as c:
            error = c.get(f"/api/v1/incidents/{uuid.uuid4()}", headers=AUTH).json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert "path" not in error
        assert "method" not in error

    def test_malformed_id_is_400(self, client):
        resp = client.get("/api/v1/incidents/not-a-uuid", headers=AUTH)
        assert resp.status_code == 400

    def test_partial_update(self, client):
        created = _create_zone(client)
        resp = client.put(
            f"/api/v1/incidents/{created['id']}",
            json={"radius": 250},
            headers=AUTH,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["radius"] == 250.0
        assert body["title"] == "Gas leak"
        assert body["latitude"] == 55.7558

    def test_update_rejects_bad_radius(self, client):
        created = _create_zone(client)
        resp = client.put(f"/api/v1/incidents/{created['id']}", json={"radius": 0}, headers=AUTH)
        assert resp.status_code == 400

    def test_update_unknown_is_404(self, client):
        resp = client.put(f"/api/v1/incidents/{uuid.uuid4()}", json={"title": "x"}, headers=AUTH)
        assert resp.status_code == 404

    def test_delete_is_soft(self, client):
        created = _create_zone(client)
        resp = client.delete(f"/api/v1/incidents/{created['id']}", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Incident deleted successfully"}

        fetched = client.get(f"/api/v1/incidents/{created['id']}", headers=AUTH).json()
        assert fetched["is_active"] is False
        active = client.get("/api/v1/incidents/active", headers=AUTH).json()["data"]
        assert active == []

    def test_delete_unknown_is_404(self, client):
        assert client.delete(f"/api/v1/incidents/{uuid.uuid4()}", headers=AUTH).status_code == 404

    def test_list_pagination_is_normalised(self, client):
        for i in range(3):
            _create_zone(client, title=f"zone-{i}")
        resp = client.get("/api/v1/incidents?page=0&page_size=500", headers=AUTH)
        body = resp.json()
        assert body["page"] == 1
        assert body["page_size"] == 20
        assert len(body["data"]) == 3

    def test_list_huge_page_is_clamped(self, client):
        _create_zone(client)
        resp = client.get(f"/api/v1/incidents?page={10**19}", headers=AUTH)
        assert resp.status_code == 200
        body = resp.json()
        assert body["page"] == MAX_PAGE
        assert body["data"] == []

    def test_list_second_page(self, client):
        for i in range(3):
            _create_zone(client, title=f"zone-{i}")
        body = client.get("/api/v1/incidents?page=2&page_size=2", headers=AUTH).json()
        assert len(body["data"]) == 1

    def test_active_list(self, client):
        created = _create_zone(client)
        body = client.get("/api/v1/incidents/active", headers=AUTH).json()
        assert [i["id"] for i in body["data"]] == [created["id"]]


class TestStatsRoute:

    def test_default_window(self, client):
        created = _create_zone(client)
        client.post(
            "/api/v1/location/check",
            json={"user_id": "u1", "latitude": 55.7558, "longitude": 37.6173},
        )
        body = client.get("/api/v1/incidents/stats", headers=AUTH).json()
        assert body["minutes"] == 60
        assert body["data"] == [{"zone_id": created["id"], "user_count": 1}]

    def test_explicit_window(self, client):
        body = client.get("/api/v1/incidents/stats?minutes=15", headers=AUTH).json()
        assert body == {"data": [], "minutes": 15}

    def test_window_reaching_before_year_one(self, client):
        created = _create_zone(client)
        client.post(
            "/api/v1/location/check",
            json={"user_id": "u1", "latitude": 55.7558, "longitude": 37.6173},
        )
        resp = client.get("/api/v1/incidents/stats?minutes=2000000000", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["data"] == [{"zone_id": created["id"], "user_count": 1}]

    @pytest.mark.parametrize("minutes", ["0", "-5", "abc"])
    def test_invalid_window(self, client, minutes):
        resp = client.get(f"/api/v1/incidents/stats?minutes={minutes}", headers=AUTH)
        assert resp.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Location check
# ═══════════════════════════════════════════════════════════════════════════

class TestLocationCheckRoute:

    def test_scenario(self, client):
        created = _create_zone(client)

        inside = client.post(
            "/api/v1/location/check",
            json={"user_id": "user-42", "latitude": 55.7558, "longitude": 37.6173},
        ).json()
        assert inside["has_danger"] is True
        assert [i["id"] for i in inside["incidents"]] == [created["id"]]

        outside = client.post(
            "/api/v1/location/check",
            json={"user_id": "user-42", "latitude": 60.0, "longitude": 30.0},
        ).json()
        assert outside == {"has_danger": False, "incidents": []}

    @pytest.mark.parametrize("body", [
        {"user_id": "", "latitude": 0, "longitude": 0},
        {"user_id": "u", "latitude": 95, "longitude": 0},
        {"user_id": "u", "latitude": 0, "longitude": 200},
        {"latitude": 0, "longitude": 0},
        {"user_id": "u", "latitude": "north", "longitude": 0},
    ])
    def test_bad_input(self, client, body):
        resp = client.post("/api/v1/location/check", json=body)
        assert resp.status_code == 400

    def test_blank_user_id(self, client):
        resp = client.post(
            "/api/v1/location/check",
            json={"user_id": "   ", "latitude": 0, "longitude": 0},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["field"] == "user_id"

    def test_match_is_pushed_to_webhook(self):
        hook_requests: List[dict] = []
        with TestClient(_make_app(hook_requests)) as c:
            created = _create_zone(c)
            c.post(
                "/api/v1/location/check",
                json={"user_id": "user-42", "latitude": 55.7558, "longitude": 37.6173},
            )
            c.post(
                "/api/v1/location/check",
                json={"user_id": "user-7", "latitude": 60.0, "longitude": 30.0},
            )
        # Shutdown drains the dispatcher, so delivery has happened by now
        assert len(hook_requests) == 1
        assert hook_requests[0]["user_id"] == "user-42"
        assert hook_requests[0]["incidents"][0]["id"] == created["id"]


# ═══════════════════════════════════════════════════════════════════════════
# Probes
# ═══════════════════════════════════════════════════════════════════════════

class TestSystemRoutes:

    def test_health_report(self, client):
        body = client.get("/api/v1/system/health").json()
        components = {c["name"]: c["status"] for c in body["components"]}
        assert components == {"database": "healthy", "redis": "degraded"}
        assert body["status"] == "degraded"

    def test_ready_when_database_up(self, client):
        assert client.get("/api/v1/system/ready").status_code == 200

    def test_ready_503_when_database_down(self, client, monkeypatch):
        monkeypatch.setattr(
            "backend.app.core.health.ping_db",
            AsyncMock(side_effect=OSError("connection refused")),
        )
        ready = client.get("/api/v1/system/ready")
        assert ready.status_code == 503
        assert ready.json()["status"] == "unhealthy"
        # Liveness still answers
        assert client.get("/api/v1/system/health").status_code == 200

    def test_request_id_header(self, client):
        resp = client.get("/api/v1/system/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"
