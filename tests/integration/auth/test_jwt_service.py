from datetime import timedelta
from uuid import uuid4

import jwt
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.core.exceptions.base import BadRequestError, ServiceErrorCode, UnauthorizedError
from src.core.service.auth.cache.token_store import TokenStore
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.token import TokenType
from src.infra.config.settings import get_settings

settings = get_settings()

ACCOUNT_ID = uuid4()


@pytest.fixture
def jwt_service(redis_client):
    return JWTService(redis_client)


class UnreachableRedis:
    async def exists(self, *keys):
        raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_create_tokens(jwt_service):
    """Should create valid access and refresh tokens"""
    tokens = await jwt_service.create_tokens(ACCOUNT_ID)

    assert tokens.token_type == "bearer"
    assert 0 < tokens.expires_in <= settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    access = await jwt_service.verify_token(tokens.access_token, TokenType.ACCESS)
    refresh = await jwt_service.verify_token(tokens.refresh_token, TokenType.REFRESH)

    assert access.sub == str(ACCOUNT_ID)
    assert refresh.sub == str(ACCOUNT_ID)
    assert access.jti != refresh.jti


@pytest.mark.asyncio
async def test_verify_token_with_wrong_type(jwt_service):
    """Should reject token when used with wrong type"""
    tokens = await jwt_service.create_tokens(ACCOUNT_ID)

    with pytest.raises(UnauthorizedError) as exc_info:
        await jwt_service.verify_token(tokens.access_token, TokenType.REFRESH)

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid token type"


@pytest.mark.asyncio
async def test_verify_expired_token(jwt_service):
    """Should reject expired token with a dedicated code"""
    token, _ = jwt_service._create_token(ACCOUNT_ID, TokenType.ACCESS, expires_delta=timedelta(seconds=-1))

    with pytest.raises(UnauthorizedError) as exc_info:
        await jwt_service.verify_token(token, TokenType.ACCESS)

    assert exc_info.value.code == ServiceErrorCode.TOKEN_EXPIRED


@pytest.mark.asyncio
async def test_verify_token_signed_with_other_key(jwt_service):
    forged = jwt.encode({"sub": str(ACCOUNT_ID), "type": "access"}, "another-secret", algorithm="HS256")

    with pytest.raises(UnauthorizedError) as exc_info:
        await jwt_service.verify_token(forged, TokenType.ACCESS)

    assert exc_info.value.message == "Invalid token"


@pytest.mark.asyncio
async def test_refresh_rotates_refresh_token(jwt_service):
    tokens = await jwt_service.create_tokens(ACCOUNT_ID)

    new_tokens = await jwt_service.refresh_access_token(tokens.refresh_token)

    payload = await jwt_service.verify_token(new_tokens.access_token, TokenType.ACCESS)
    assert payload.sub == str(ACCOUNT_ID)

    with pytest.raises(UnauthorizedError) as exc_info:
        await jwt_service.refresh_access_token(tokens.refresh_token)
    assert exc_info.value.message == "Token has been revoked"


@pytest.mark.asyncio
async def test_revoked_access_token_is_rejected(jwt_service):
    tokens = await jwt_service.create_tokens(ACCOUNT_ID)
    payload = await jwt_service.verify_token(tokens.access_token, TokenType.ACCESS)

    await jwt_service.revoke_token(tokens.access_token, reason="Logout")

    entry = await jwt_service.token_store.get_entry(payload.jti)
    assert entry.reason == "Logout"
    with pytest.raises(UnauthorizedError):
        await jwt_service.verify_token(tokens.access_token, TokenType.ACCESS)


@pytest.mark.asyncio
async def test_revoke_rejects_garbage(jwt_service):
    with pytest.raises(BadRequestError):
        await jwt_service.revoke_token("not-a-jwt")


@pytest.mark.asyncio
async def test_expired_token_is_not_stored(jwt_service, redis_client):
    margin = timedelta(minutes=settings.TOKEN_BLACKLIST_EXPIRE_MARGIN_MINUTES)
    token, _ = jwt_service._create_token(ACCOUNT_ID, TokenType.ACCESS, expires_delta=-margin - timedelta(minutes=1))

    await jwt_service.revoke_token(token)

    assert await redis_client.keys("promptpalace:blacklist:*") == []


@pytest.mark.asyncio
async def test_blacklist_check_fails_open():
    store = TokenStore(UnreachableRedis())
    assert await store.is_blacklisted("some-jti") is False
