from unittest.mock import AsyncMock

import pytest

from src.core.exceptions.base import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceErrorCode,
    UnauthorizedError,
)
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.auth import (
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from src.core.service.auth.models.token import TokenType
from src.core.service.entitlement.models import Currency
from src.core.service.mail.mail_service import MailService

PASSWORD = "s3cret-pass"


@pytest.fixture
def mail():
    mail = AsyncMock(spec=MailService)
    mail.send_otp.return_value = True
    mail.send_welcome.return_value = True
    mail.send_password_reset.return_value = True
    return mail


@pytest.fixture
def jwt_service(redis_client):
    return JWTService(redis_client)


@pytest.fixture
def account_service(session, jwt_service, mail, clock):
    return AccountService(session, jwt_service, mail_service=mail, clock=clock)


async def register(account_service, mail, username="promptsmith"):
    response = await account_service.register(
        RegisterRequest(username=username, email=f"{username}@example.com", password=PASSWORD)
    )
    otp = mail.send_otp.call_args.args[1]
    return response, otp


@pytest.mark.asyncio
async def test_register_sends_otp_and_grants_signup_points(account_service, mail):
    response, otp = await register(account_service, mail)

    assert response.success
    assert response.account.username == "promptsmith"
    assert response.account.is_email_verified is False
    assert response.account.reward_points == 100
    assert mail.send_otp.call_args.args[0] == "promptsmith@example.com"
    assert len(otp) == 6


@pytest.mark.asyncio
async def test_register_duplicate_handle(account_service, mail):
    await register(account_service, mail)

    with pytest.raises(ConflictError) as exc_info:
        await account_service.register(
            RegisterRequest(username="promptsmith", email="other@example.com", password=PASSWORD)
        )
    assert exc_info.value.details == {"field": "username"}

    with pytest.raises(ConflictError) as exc_info:
        await account_service.register(
            RegisterRequest(username="someone", email="PromptSmith@example.com", password=PASSWORD)
        )
    assert exc_info.value.details == {"field": "email"}


@pytest.mark.asyncio
async def test_login_requires_verified_email(account_service, mail):
    await register(account_service, mail)

    with pytest.raises(ForbiddenError) as exc_info:
        await account_service.login(LoginRequest(identifier="promptsmith", password=PASSWORD))
    assert exc_info.value.code == ServiceErrorCode.EMAIL_NOT_VERIFIED


@pytest.mark.asyncio
async def test_verify_email_flow(account_service, jwt_service, mail):
    _, otp = await register(account_service, mail)
    wrong = "000000" if otp != "000000" else "111111"

    with pytest.raises(BadRequestError) as exc_info:
        await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=wrong))
    assert exc_info.value.code == ServiceErrorCode.INVALID_OTP

    auth = await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=otp))

    assert auth.account.is_email_verified
    payload = await jwt_service.verify_token(auth.access_token, TokenType.ACCESS)
    assert payload.sub == str(auth.account.id)
    mail.send_welcome.assert_awaited_once()

    with pytest.raises(BadRequestError) as exc_info:
        await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=otp))
    assert exc_info.value.message == "Email already verified"


@pytest.mark.asyncio
async def test_verify_email_with_expired_otp(account_service, mail, clock):
    _, otp = await register(account_service, mail)
    clock.advance(minutes=11)

    with pytest.raises(BadRequestError) as exc_info:
        await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=otp))
    assert exc_info.value.code == ServiceErrorCode.INVALID_OTP


@pytest.mark.asyncio
async def test_resend_otp_replaces_previous_code(account_service, mail):
    _, first = await register(account_service, mail)

    await account_service.resend_otp("promptsmith@example.com")
    second = mail.send_otp.call_args.args[1]

    if first != second:
        with pytest.raises(BadRequestError):
            await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=first))
    auth = await account_service.verify_email(VerifyEmailRequest(email="promptsmith@example.com", otp=second))
    assert auth.account.is_email_verified


@pytest.mark.asyncio
async def test_login_checks(account_service, make_account):
    await make_account(username="verified", password=PASSWORD)
    await make_account(username="blocked", password=PASSWORD, is_blocked=True)

    with pytest.raises(UnauthorizedError) as exc_info:
        await account_service.login(LoginRequest(identifier="verified", password="wrong-pass"))
    assert exc_info.value.code == ServiceErrorCode.INVALID_CREDENTIALS

    with pytest.raises(UnauthorizedError):
        await account_service.login(LoginRequest(identifier="ghost", password=PASSWORD))

    with pytest.raises(ForbiddenError) as exc_info:
        await account_service.login(LoginRequest(identifier="blocked", password=PASSWORD))
    assert exc_info.value.code == ServiceErrorCode.ACCOUNT_BLOCKED

    by_email = await account_service.login(LoginRequest(identifier="Verified@Example.com", password=PASSWORD))
    assert by_email.account.username == "verified"


@pytest.mark.asyncio
async def test_password_reset(account_service, mail, make_account):
    await make_account(username="forgetful", password=PASSWORD)

    with pytest.raises(NotFoundError):
        await account_service.forgot_password("nobody@example.com")

    await account_service.forgot_password("forgetful@example.com")
    otp = mail.send_password_reset.call_args.args[1]

    await account_service.reset_password(
        ResetPasswordRequest(email="forgetful@example.com", otp=otp, new_password="brand-new-pass")
    )

    with pytest.raises(UnauthorizedError):
        await account_service.login(LoginRequest(identifier="forgetful", password=PASSWORD))
    auth = await account_service.login(LoginRequest(identifier="forgetful", password="brand-new-pass"))
    assert auth.account.username == "forgetful"

    # Reset codes are single use
    with pytest.raises(BadRequestError):
        await account_service.reset_password(
            ResetPasswordRequest(email="forgetful@example.com", otp=otp, new_password="third-pass")
        )


@pytest.mark.asyncio
async def test_logout_revokes_both_tokens(account_service, jwt_service, make_account):
    await make_account(username="leaving", password=PASSWORD)
    auth = await account_service.login(LoginRequest(identifier="leaving", password=PASSWORD))

    revoked = await account_service.logout(auth.access_token, auth.refresh_token)

    assert revoked == 2
    with pytest.raises(UnauthorizedError):
        await jwt_service.verify_token(auth.access_token, TokenType.ACCESS)
    with pytest.raises(UnauthorizedError):
        await account_service.refresh(auth.refresh_token)


@pytest.mark.asyncio
async def test_update_profile(account_service, make_account):
    account = await make_account(username="painter")

    updated = await account_service.update_profile(
        account.id,
        UpdateProfileRequest(bio="I draw with prompts", currency_preference=Currency.NGN),
    )

    assert updated.bio == "I draw with prompts"
    assert updated.currency_preference == Currency.NGN
    assert updated.username == "painter"
