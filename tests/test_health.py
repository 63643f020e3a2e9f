"""Tests for GET /api/health, GET /api/config and the root endpoint."""
import pytest
from httpx import AsyncClient

from tests.conftest import FakeCompletionAPI


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert "status" in data
    assert "timestamp" in data
    assert data["database"] == "ok"


@pytest.mark.asyncio
async def test_health_reports_missing_ai_key(client: AsyncClient):
    resp = await client.get("/api/health/")
    data = resp.json()
    assert data["ai"] == "not_configured"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_health_healthy_with_ai_key(client: AsyncClient, ai: FakeCompletionAPI):
    resp = await client.get("/api/health/")
    data = resp.json()
    assert data["ai"] == "ok"
    assert data["status"] == "healthy"
    # The health check must not spend a completion call
    assert ai.requests == []


@pytest.mark.asyncio
async def test_client_config_without_key(client: AsyncClient):
    resp = await client.get("/api/config")
    assert resp.status_code == 200
    assert resp.json() == {"hasAIKey": False}


@pytest.mark.asyncio
async def test_client_config_with_key(client: AsyncClient, ai: FakeCompletionAPI):
    resp = await client.get("/api/config")
    assert resp.json() == {"hasAIKey": True}


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Alloqly API"
    assert "X-Process-Time" in resp.headers
