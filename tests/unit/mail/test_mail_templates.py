from unittest.mock import AsyncMock

import pytest

from src.core.service.mail.mail_service import MailService


@pytest.fixture
def mail_service():
    service = MailService(api_key="re_test", sender="noreply@example.com")
    service.send = AsyncMock(return_value=True)
    return service


def sent_html(service: MailService) -> str:
    return service.send.await_args.args[2]


@pytest.mark.asyncio
async def test_welcome_escapes_display_name(mail_service):
    await mail_service.send_welcome("eve@example.com", '<img src=x onerror="alert(1)">')

    body = sent_html(mail_service)
    assert "<img" not in body
    assert "&lt;img src=x onerror=&quot;alert(1)&quot;&gt;" in body


@pytest.mark.asyncio
async def test_reset_link_encodes_address(mail_service):
    await mail_service.send_password_reset('a+b"@example.com', "123456")

    body = sent_html(mail_service)
    assert "reset-password?email=a%2Bb%22%40example.com" in body
    assert "<h2>123456</h2>" in body


@pytest.mark.asyncio
async def test_send_without_api_key_is_skipped():
    assert await MailService(api_key="").send("eve@example.com", "Hi", "<p>Hi</p>") is False
