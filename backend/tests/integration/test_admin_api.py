"""Admin rider endpoints"""
import pytest
from fastapi.testclient import TestClient

from fakes import RIDER_A, RIDER_B
from roho.api.deps import get_rider_registry
from roho.core.config import settings
from roho.main import app

ADMIN_HEADERS = {"X-Admin-Secret": "admin-test-secret"}


@pytest.fixture
def client(rider_registry, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_SECRET", "admin-test-secret")
    app.dependency_overrides[get_rider_registry] = lambda: rider_registry
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAdminAuth:

    def test_missing_secret(self, client):
        response = client.get("/admin/riders")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    def test_wrong_secret(self, client):
        response = client.get("/admin/riders", headers={"X-Admin-Secret": "nope"})
        assert response.status_code == 401

    def test_unconfigured_secret_fails_closed_in_production(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_SECRET", "")
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        response = client.get("/admin/riders")

        assert response.status_code == 500


class TestRiderEndpoints:

    def test_register_rider(self, client, session_store):
        response = client.post(
            "/admin/riders",
            json={"phone": RIDER_A, "name": "Wanjiku"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 201
        assert response.json() == {
            "success": True,
            "message": 'Rider "Wanjiku" registered successfully',
            "phone": RIDER_A,
        }
        assert session_store.accounts[RIDER_A].role == "rider"

    def test_duplicate_is_conflict(self, client):
        client.post("/admin/riders", json={"phone": RIDER_A, "name": "Wanjiku"}, headers=ADMIN_HEADERS)

        response = client.post(
            "/admin/riders",
            json={"phone": RIDER_A, "name": "Wanjiku Again"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 409

    def test_invalid_phone(self, client):
        response = client.post(
            "/admin/riders",
            json={"phone": "+254700000001", "name": "Wanjiku"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422

    def test_list_riders(self, client):
        for phone, name in ((RIDER_A, "Wanjiku"), (RIDER_B, "Otieno")):
            client.post("/admin/riders", json={"phone": phone, "name": name}, headers=ADMIN_HEADERS)

        response = client.get("/admin/riders", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert [r["name"] for r in body["riders"]] == ["Wanjiku", "Otieno"]
        assert all(r["total_deliveries"] == 0 for r in body["riders"])
