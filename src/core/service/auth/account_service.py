"""
Account lifecycle: registration, OTP email verification, password reset,
login and profile management. Token issuing is delegated to JWTService and
mail to MailService; mail is best effort and never fails a request.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceErrorCode,
    UnauthorizedError,
)
from src.core.logger.logger import get_logger
from src.core.service.auth.jwt_service import JWTService
from src.core.service.auth.models.account import Account, AccountPublic
from src.core.service.auth.models.auth import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from src.core.service.auth.models.token import TokenResponse, TokenType
from src.core.service.auth.otp import issue_otp, otp_matches
from src.core.service.auth.password import hash_password, verify_password
from src.core.service.mail.mail_service import MailService
from src.core.utils.clock import Clock, utc_now
from src.infra.config.settings import get_settings
from src.infra.repository.account_repository import AccountRepository

logger = get_logger(__name__)
settings = get_settings()


class AccountService:
    def __init__(
        self,
        session: AsyncSession,
        jwt_service: JWTService,
        mail_service: Optional[MailService] = None,
        clock: Clock = utc_now
    ):
        self.session = session
        self.jwt_service = jwt_service
        self.mail = mail_service or MailService()
        self.clock = clock
        self.accounts = AccountRepository(session)

    def _auth_response(self, tokens: TokenResponse, account: Account) -> AuthResponse:
        return AuthResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            account=AccountPublic.from_account(account),
        )

    async def _require_by_email(self, email: str) -> Account:
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def register(self, request: RegisterRequest) -> RegisterResponse:
        conflict = await self.accounts.find_conflict(request.username, request.email)
        if conflict:
            logger.info("Registration rejected, duplicate field", extra={"field": conflict})
            raise ConflictError(f"An account with this {conflict} already exists", details={"field": conflict})

        otp, otp_hash, otp_expires_at = issue_otp(self.clock(), settings.OTP_EXPIRY_MINUTES, settings.OTP_LENGTH)
        try:
            account = await self.accounts.create(
                username=request.username,
                email=request.email,
                password_hash=hash_password(request.password),
                reward_points=settings.SIGNUP_REWARD_POINTS,
                otp_hash=otp_hash,
                otp_expires_at=otp_expires_at,
            )
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same handle
            await self.session.rollback()
            raise ConflictError("An account with this username or email already exists")

        await self.mail.send_otp(account.email, otp)
        logger.info("Account registered", extra={"account_id": str(account.id)})

        return RegisterResponse(
            message="Registered successfully. Check your email for OTP.",
            account=AccountPublic.from_account(account),
        )

    async def verify_email(self, request: VerifyEmailRequest) -> AuthResponse:
        account = await self._require_by_email(request.email)
        if account.is_email_verified:
            raise BadRequestError("Email already verified")

        stored = await self.accounts.get_otp(account.id, "verify")
        if not otp_matches(request.otp, stored["hash"], stored["expires_at"], self.clock()):
            logger.info("Email verification failed", extra={"account_id": str(account.id)})
            raise BadRequestError("Invalid or expired OTP", code=ServiceErrorCode.INVALID_OTP)

        await self.accounts.mark_email_verified(account.id)
        await self.accounts.record_login(account.id, self.clock())
        await self.session.commit()

        account = await self.accounts.get_by_id(account.id)
        await self.mail.send_welcome(account.email, account.name or account.username)
        tokens = await self.jwt_service.create_tokens(account.id)

        logger.info("Email verified", extra={"account_id": str(account.id)})
        return self._auth_response(tokens, account)

    async def resend_otp(self, email: str) -> None:
        account = await self._require_by_email(email)
        if account.is_email_verified:
            raise BadRequestError("Email already verified")

        otp, otp_hash, expires_at = issue_otp(self.clock(), settings.OTP_EXPIRY_MINUTES, settings.OTP_LENGTH)
        await self.accounts.set_otp(account.id, otp_hash, expires_at)
        await self.session.commit()
        await self.mail.send_otp(account.email, otp)

    async def forgot_password(self, email: str) -> None:
        account = await self._require_by_email(email)

        otp, otp_hash, expires_at = issue_otp(self.clock(), settings.OTP_EXPIRY_MINUTES, settings.OTP_LENGTH)
        await self.accounts.set_reset_otp(account.id, otp_hash, expires_at)
        await self.session.commit()
        await self.mail.send_password_reset(account.email, otp)

    async def reset_password(self, request: ResetPasswordRequest) -> None:
        account = await self._require_by_email(request.email)

        stored = await self.accounts.get_otp(account.id, "reset")
        if not otp_matches(request.otp, stored["hash"], stored["expires_at"], self.clock()):
            raise BadRequestError("Invalid or expired OTP", code=ServiceErrorCode.INVALID_OTP)

        await self.accounts.update_password(account.id, hash_password(request.new_password))
        await self.session.commit()
        logger.info("Password reset", extra={"account_id": str(account.id)})

    async def login(self, request: LoginRequest) -> AuthResponse:
        account = await self.accounts.get_by_login(request.identifier)
        if account is None or not verify_password(request.password, account.password_hash or ""):
            logger.info("Login failed", extra={"identifier": request.identifier})
            raise UnauthorizedError("Invalid credentials", code=ServiceErrorCode.INVALID_CREDENTIALS)

        if account.is_blocked:
            raise ForbiddenError("Your account is blocked.", code=ServiceErrorCode.ACCOUNT_BLOCKED)

        if not account.is_email_verified:
            raise ForbiddenError(
                "Email not verified. Please verify your email to login.",
                code=ServiceErrorCode.EMAIL_NOT_VERIFIED
            )

        await self.accounts.record_login(account.id, self.clock())
        await self.session.commit()

        tokens = await self.jwt_service.create_tokens(account.id)
        logger.info("Login successful", extra={"account_id": str(account.id)})
        return self._auth_response(tokens, account)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        return await self.jwt_service.refresh_access_token(refresh_token)

    async def logout(self, access_token: str, refresh_token: Optional[str] = None) -> int:
        """Revoke the access token and, if given, the refresh token. Returns the revoked count."""
        await self.jwt_service.revoke_token(access_token, reason="Logout")
        revoked = 1
        if refresh_token:
            # A refresh token must be genuine before it is accepted for revocation
            await self.jwt_service.verify_token(refresh_token, TokenType.REFRESH)
            await self.jwt_service.revoke_token(refresh_token, reason="Logout")
            revoked += 1
        return revoked

    async def get_account(self, account_id: UUID) -> Account:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def update_profile(self, account_id: UUID, request: UpdateProfileRequest) -> Account:
        await self.get_account(account_id)
        await self.accounts.update_profile(account_id, request.model_dump(exclude_none=True))
        await self.session.commit()
        return await self.get_account(account_id)
