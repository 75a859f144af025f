import json
import logging

import pytest

from src.core.logger.logger import JsonFormatter

REQUEST_LOGGER = "src.api.middleware.logging.request_logging"


@pytest.fixture(autouse=True)
def capture_info(caplog):
    caplog.set_level(logging.INFO)


def request_records(caplog):
    return [record for record in caplog.records if record.name == REQUEST_LOGGER]


@pytest.mark.asyncio
async def test_request_logged_with_correlation_id(client, caplog):
    response = await client.get("/health", headers={"X-Request-ID": "test-correlation-id"})
    assert response.status_code == 200

    record = request_records(caplog)[-1]
    assert record.request_id == "test-correlation-id"
    assert record.method == "GET"
    assert record.path == "/api/v1/health"
    assert record.status_code == 200


@pytest.mark.asyncio
async def test_request_without_id_gets_one(client, caplog):
    response = await client.get("/health")

    generated = response.headers["X-Request-ID"]
    assert generated
    assert request_records(caplog)[-1].request_id == generated


@pytest.mark.asyncio
async def test_validation_failure_is_logged_without_password(client, caplog):
    response = await client.post("/auth/login", json={"identifier": "", "password": "hunter22"})
    assert response.status_code == 422

    formatted = [JsonFormatter().format(record) for record in caplog.records]
    assert any("Validation error" in line for line in formatted)
    assert not any("hunter22" in line for line in formatted)


def test_json_formatter_includes_extra_fields():
    record = logging.makeLogRecord({
        "name": "promptpalace.test",
        "levelno": logging.INFO,
        "levelname": "INFO",
        "msg": "Reward given",
        "trend_id": "t-1",
    })

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Reward given"
    assert data["level"] == "INFO"
    assert data["trend_id"] == "t-1"
