import pytest

from src.infra.config.settings import settings

PASSWORD = "s3cret-pass"


async def register(client, username="promptsmith", password=PASSWORD):
    return await client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )


@pytest.mark.asyncio
async def test_register_verify_and_fetch_profile(client, mail):
    response = await register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["account"]["username"] == "promptsmith"
    assert "password_hash" not in body["account"]

    otp = mail.send_otp.call_args.args[1]
    response = await client.post("/auth/verify-email", json={"email": "promptsmith@example.com", "otp": otp})
    assert response.status_code == 200
    auth = response.json()
    assert auth["token_type"] == "bearer"
    assert auth["account"]["is_email_verified"] is True

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {auth['access_token']}"})
    assert response.status_code == 200
    assert response.json()["email"] == "promptsmith@example.com"


@pytest.mark.asyncio
async def test_register_duplicate_is_conflict(client):
    await register(client)

    response = await register(client)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "CONFLICT"
    assert error["details"] == {"field": "email"}

    response = await client.post(
        "/auth/register",
        json={"username": "promptsmith", "email": "other@example.com", "password": PASSWORD},
    )
    assert response.json()["error"]["details"] == {"field": "username"}


@pytest.mark.asyncio
async def test_register_validation_does_not_echo_password(client):
    response = await client.post(
        "/auth/register",
        json={"username": "ab", "email": "not-an-email", "password": "123"},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_INPUT"
    errors = body["error"]["details"]["validation_errors"]
    fields = {error["field"] for error in errors}
    assert {"body.username", "body.email", "body.password"} <= fields
    assert all("input" not in error for error in errors if error["field"] == "body.password")


@pytest.mark.asyncio
async def test_login_with_bad_credentials(client, make_account):
    await make_account(username="verified", password=PASSWORD)

    response = await client.post("/auth/login", json={"identifier": "verified", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_login_and_logout(client, make_account):
    await make_account(username="leaving", password=PASSWORD)

    response = await client.post("/auth/login", json={"identifier": "leaving", "password": PASSWORD})
    assert response.status_code == 200
    assert "X-RateLimit-Limit" in response.headers
    tokens = response.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    response = await client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers)
    assert response.status_code == 200

    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_protected_route_requires_bearer(client):
    response = await client.get("/auth/me")

    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.skipif(not settings.RATE_LIMIT_ENABLED, reason="rate limiting disabled")
async def test_repeated_failed_logins_block_the_client(client, make_account):
    await make_account(username="target", password=PASSWORD)
    headers = {"X-Forwarded-For": "203.0.113.7"}

    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD):
        response = await client.post(
            "/auth/login", json={"identifier": "target", "password": "guess"}, headers=headers
        )
        assert response.status_code == 401

    response = await client.post("/auth/login", json={"identifier": "target", "password": PASSWORD}, headers=headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_BLOCKED"
    assert "Retry-After" in response.headers
