"""Tests for health, root and metrics endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """Test the basic health check."""
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "Elder Watch API"


@pytest.mark.asyncio
async def test_detailed_health_degraded_without_redis(client: AsyncClient) -> None:
    """Test that an unreachable Redis degrades rather than fails the service."""
    with patch(
        "elderwatch.api.v1.endpoints.health.check_redis_connection",
        AsyncMock(return_value=False),
    ):
        response = await client.get("/api/v1/health/detailed")

    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "healthy"
    assert data["redis"] == "unhealthy"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_ping(client: AsyncClient) -> None:
    """Test the ping endpoint."""
    response = await client.get("/api/v1/ping")

    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_root(client: AsyncClient) -> None:
    """Test the root endpoint."""
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    """Test that a caller-supplied request ID is returned."""
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
    assert "x-process-time" in response.headers


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client: AsyncClient) -> None:
    """Test that framework errors share the error response shape."""
    response = await client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json()["code"] == "HTTPException"


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient) -> None:
    """Test the Prometheus scrape endpoint."""
    await client.get("/api/v1/ping")
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests" in response.text
