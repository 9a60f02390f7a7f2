"""
Tests for the HTTP endpoints.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from app import parks
from app.cache import get_cache_manager, reset_cache_manager
from app.main import app
from app.parks import Destination, EntityType, UpstreamError
from config.settings import settings

client = TestClient(app)


class StubDestination(Destination):
    slug = "stubland"
    name = "Stubland"

    async def build_destination_entity(self):
        return {"_id": "stubland", "entityType": EntityType.DESTINATION}

    async def build_park_entities(self):
        return [{"_id": "stubpark", "entityType": EntityType.PARK}]

    async def build_attraction_entities(self):
        return [{"_id": "ride", "entityType": EntityType.ATTRACTION}]

    async def build_entity_live_data(self):
        raise UpstreamError(self.slug, "vendor is down")

    async def build_entity_schedule_data(self):
        return [{"_id": "stubpark", "schedule": []}]


@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    """Fresh global cache and no cached adapter instances for every test."""
    reset_cache_manager()
    monkeypatch.setattr(parks, "_instances", {})
    yield
    reset_cache_manager()


@pytest.fixture
def stub_destination(monkeypatch):
    monkeypatch.setitem(parks.DESTINATIONS, "stubland", StubDestination)
    return "stubland"


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status():
    """Test that /health returns status: ok"""
    response = client.get("/health")
    data = response.json()
    assert data["status"] == "ok"


def test_version_endpoint():
    data = client.get("/version").json()
    assert data["version"].startswith("v")


def test_destinations_lists_parcasterix():
    response = client.get("/destinations")
    assert {"slug": "parcasterix", "name": "Parc Asterix"} in response.json()


def test_cache_keys_by_prefix():
    manager = get_cache_manager()
    for key in ("a:1", "a:2", "b:1"):
        asyncio.run(manager.set(key, "v", 60_000))

    data = client.get("/cache/keys", params={"prefix": "a:"}).json()
    assert data == {"prefix": "a:", "count": 2, "keys": ["a:1", "a:2"]}


def test_cache_stats():
    data = client.get("/cache/stats").json()
    assert data["misses"] == 0
    assert data["coalescer"]["active_requests"] == 0


def test_unknown_destination_is_404():
    response = client.get("/destinations/nowhere/entities")
    assert response.status_code == 404


def test_unconfigured_destination_is_503(monkeypatch):
    monkeypatch.setattr(settings, "parcasterix_api_base", None)
    response = client.get("/destinations/parcasterix/live")
    assert response.status_code == 503


def test_entities_endpoint(stub_destination):
    response = client.get(f"/destinations/{stub_destination}/entities")
    assert response.status_code == 200
    ids = [e["_id"] for e in response.json()]
    assert ids == ["stubland", "stubpark", "ride"]


def test_entities_endpoint_filters_by_type(stub_destination):
    response = client.get(
        f"/destinations/{stub_destination}/entities", params={"type": "ATTRACTION"}
    )
    assert [e["_id"] for e in response.json()] == ["ride"]


def test_upstream_failure_is_502(stub_destination):
    response = client.get(f"/destinations/{stub_destination}/live")
    assert response.status_code == 502
    assert "vendor is down" in response.json()["detail"]


def test_schedule_endpoint(stub_destination):
    response = client.get(f"/destinations/{stub_destination}/schedule")
    assert response.json() == [{"_id": "stubpark", "schedule": []}]


def test_destinations_lists_every_adapter():
    slugs = {d["slug"] for d in client.get("/destinations").json()}
    assert slugs >= {"parcasterix", "plopsaland", "universalorlando", "universalstudios"}


@pytest.mark.parametrize("slug, setting", [
    ("plopsaland", "plopsaland_client_id"),
    ("universalorlando", "universal_secret_key"),
])
def test_unconfigured_adapters_are_503(monkeypatch, slug, setting):
    monkeypatch.setattr(settings, setting, None)
    response = client.get(f"/destinations/{slug}/entities")
    assert response.status_code == 503
