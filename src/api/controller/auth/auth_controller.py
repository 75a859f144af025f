"""
Account authentication controller: registration, OTP verification,
password reset, login, token refresh, logout and profile.
"""

from fastapi import APIRouter, Depends, status

from src.api.middleware.authentication.jwt_bearer import bearer_scheme
from src.core.dependencies import get_account_service, get_current_account
from src.core.service.auth.account_service import AccountService
from src.core.service.auth.models.account import Account, AccountPublic
from src.core.service.auth.models.auth import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from src.core.service.auth.models.token import TokenResponse
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    account_service: AccountService = Depends(get_account_service)
):
    """
    Create an unverified account with the signup point balance.
    A six-digit OTP is mailed for email verification.
    """
    return await account_service.register(request)


@router.post("/verify-email", response_model=AuthResponse)
async def verify_email(
    request: VerifyEmailRequest,
    account_service: AccountService = Depends(get_account_service)
):
    """Verify the email with the mailed OTP and return a token pair."""
    return await account_service.verify_email(request)


@router.post("/resend-otp", response_model=MessageResponse)
async def resend_otp(
    request: EmailRequest,
    account_service: AccountService = Depends(get_account_service)
):
    await account_service.resend_otp(request.email)
    return MessageResponse(message="OTP resent successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: EmailRequest,
    account_service: AccountService = Depends(get_account_service)
):
    await account_service.forgot_password(request.email)
    return MessageResponse(message="Reset OTP sent to email")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    account_service: AccountService = Depends(get_account_service)
):
    await account_service.reset_password(request)
    return MessageResponse(message="Password reset successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    account_service: AccountService = Depends(get_account_service)
):
    """Log in with email or username. Unverified and blocked accounts are refused."""
    return await account_service.login(request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: RefreshTokenRequest,
    account_service: AccountService = Depends(get_account_service)
):
    """Exchange a refresh token for a new pair. The used refresh token is revoked."""
    return await account_service.refresh(request.refresh_token.strip())


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    token: str = Depends(bearer_scheme),
    account: Account = Depends(get_current_account),
    account_service: AccountService = Depends(get_account_service)
):
    revoked = await account_service.logout(token, request.refresh_token)
    logger.info("Logout successful", extra={"account_id": str(account.id), "revoked_tokens": revoked})
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=AccountPublic)
async def get_profile(account: Account = Depends(get_current_account)):
    return AccountPublic.from_account(account)


@router.patch("/me", response_model=AccountPublic)
async def update_profile(
    request: UpdateProfileRequest,
    account: Account = Depends(get_current_account),
    account_service: AccountService = Depends(get_account_service)
):
    updated = await account_service.update_profile(account.id, request)
    return AccountPublic.from_account(updated)
