from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi import FastAPI
from starlette.requests import Request

from src.api.middleware.security import rate_limiter
from src.api.middleware.security.rate_limiter import (
    UNMATCHED_BUCKET,
    EnhancedRateLimiter,
    bucket_path,
)

START = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def routed_app():
    app = FastAPI()

    @app.get("/api/v1/prompts/{prompt_id}")
    async def get_prompt(prompt_id: str):
        return {}

    @app.post("/api/v1/trends/{trend_id}/rewards")
    async def give_reward(trend_id: str):
        return {}

    return app


def request_for(app, path: str, method: str = "GET") -> Request:
    return Request({
        "type": "http",
        "app": app,
        "method": method,
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [],
    })


@pytest.fixture
def now(monkeypatch):
    current = {"value": START}
    monkeypatch.setattr(rate_limiter, "_now", lambda: current["value"])
    return current


def test_requests_for_different_ids_share_a_bucket(routed_app):
    paths = {bucket_path(request_for(routed_app, f"/api/v1/prompts/{uuid4()}")) for _ in range(3)}

    assert paths == {"/api/v1/prompts/{prompt_id}"}


def test_unknown_paths_share_one_bucket(routed_app):
    assert bucket_path(request_for(routed_app, "/api/v1/nothing/here")) == UNMATCHED_BUCKET
    assert bucket_path(request_for(routed_app, f"/wp-admin/{uuid4()}")) == UNMATCHED_BUCKET


def test_reward_gives_use_the_reward_limit(routed_app):
    limiter = EnhancedRateLimiter()
    path = bucket_path(request_for(routed_app, f"/api/v1/trends/{uuid4()}/rewards", method="POST"))

    bucket, limit = limiter.limit_for("POST", path)

    assert bucket == "reward"
    assert limit == rate_limiter.settings.RATE_LIMIT_REWARD


def test_expired_entries_are_dropped(now):
    limiter = EnhancedRateLimiter()
    limiter.add_request("10.0.0.1", "/api/v1/prompts/{prompt_id}")

    now["value"] = START + timedelta(minutes=2)
    limited, count, _ = limiter.is_rate_limited("10.0.0.1", "/api/v1/prompts/{prompt_id}", limit=5)

    assert (limited, count) == (False, 0)
    assert limiter.endpoint_requests == {}


def test_sweep_removes_idle_clients(now):
    limiter = EnhancedRateLimiter()
    limiter.add_request("10.0.0.1", "/api/v1/prompts/{prompt_id}")
    limiter.block_ip("10.0.0.9")

    now["value"] = START + timedelta(minutes=2)
    limiter.add_request("10.0.0.2", "/api/v1/trends")

    assert list(limiter.endpoint_requests) == ["/api/v1/trends"]
    assert list(limiter.endpoint_requests["/api/v1/trends"]) == ["10.0.0.2"]
    # Blocks outlive the window and are only dropped once they expire
    assert "10.0.0.9" in limiter.blocked_ips


def test_limit_counts_only_the_window(now):
    limiter = EnhancedRateLimiter()
    for _ in range(3):
        limiter.add_request("10.0.0.1", "bucket")

    assert limiter.is_rate_limited("10.0.0.1", "bucket", limit=3)[0] is True

    now["value"] = START + timedelta(seconds=61)
    assert limiter.is_rate_limited("10.0.0.1", "bucket", limit=3)[0] is False
