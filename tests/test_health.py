"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_reports_dependencies(client):
    """Database is reachable; Redis is not initialised in tests."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["redis"].startswith("error")
    assert data["status"] == "degraded"
    assert "version" in data


@pytest.mark.asyncio
async def test_root_points_at_docs(client):
    resp = await client.get("/")
    assert resp.json()["health"] == "/api/v1/health"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client):
    resp = await client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json() == {
        "status_code": 404,
        "error": "not_found",
        "message": "Not Found",
        "success": False,
    }
