import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.core.dependencies import get_redis_client
from src.infra.config.settings import settings


class UnreachableRedis:
    async def ping(self):
        raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_health_check_contract(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app"] == settings.APP_NAME
    assert data["version"] == settings.APP_VERSION
    assert data["services"] == {"database": "healthy", "redis": "healthy", "api": "healthy"}
    assert isinstance(data["timestamp"], str)


@pytest.mark.asyncio
async def test_health_reports_database_outage(client, stub_database):
    stub_database.reachable = False

    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"
    assert response.json()["services"]["database"] == "unhealthy"


@pytest.mark.asyncio
async def test_health_degraded_without_redis(app, client):
    app.dependency_overrides[get_redis_client] = lambda: UnreachableRedis()

    response = await client.get("/health")

    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["redis"] == "degraded"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/no-such-route")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
