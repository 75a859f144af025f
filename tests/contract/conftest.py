"""
HTTP-level fixtures. Requests run through the full app in the test's event
loop, with the database, Redis and mail dependencies swapped for test doubles.
Startup hooks are not run, so catalogs are seeded by the fixtures that need them.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from src.app import create_app
from src.core.dependencies import get_mail_service, get_redis_client
from src.core.service.auth.jwt_service import JWTService
from src.core.service.mail.mail_service import MailService
from src.infra.database import get_async_session, get_database_manager


class StubDatabase:
    def __init__(self, reachable: bool = True):
        self.reachable = reachable

    async def ping(self) -> bool:
        return self.reachable


@pytest.fixture
def mail():
    mail = AsyncMock(spec=MailService)
    mail.send_otp.return_value = True
    mail.send_welcome.return_value = True
    mail.send_password_reset.return_value = True
    return mail


@pytest.fixture
def stub_database():
    return StubDatabase()


@pytest.fixture
def app(session_factory, redis_client, mail, stub_database):
    app = create_app()

    async def test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = test_session
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[get_mail_service] = lambda: mail
    app.dependency_overrides[get_database_manager] = lambda: stub_database
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver/api/v1") as client:
        yield client


@pytest.fixture
def bearer(redis_client):
    """Authorization header for an existing account"""
    async def _bearer(account):
        tokens = await JWTService(redis_client).create_tokens(account.id)
        return {"Authorization": f"Bearer {tokens.access_token}"}

    return _bearer
