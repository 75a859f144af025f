"""
Account authentication request/response models.
These models define the API contract for the /auth endpoints.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.core.service.auth.models.account import AccountPublic, Profession
from src.core.service.entitlement.models import Currency


class RegisterRequest(BaseModel):
    """Request model for account registration"""
    username: str = Field(..., min_length=3, max_length=30, description="Unique public handle")
    email: EmailStr = Field(..., description="Email address, verified by OTP")
    password: str = Field(..., min_length=6, description="Plain password, stored as bcrypt hash")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "username": "promptsmith",
                "email": "smith@example.com",
                "password": "s3cret-pass"
            }
        }


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)


class EmailRequest(BaseModel):
    """Request model for OTP resend and forgot-password"""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)
    new_password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    """Login with either email or username"""
    identifier: str = Field(..., min_length=1, description="Email address or username")
    password: str = Field(..., min_length=1)

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        return v.strip()


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, description="Valid refresh token")


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = Field(None, description="Refresh token to revoke alongside the access token")


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    avatar: Optional[str] = None
    profession: Optional[Profession] = None
    bio: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=200)
    currency_preference: Optional[Currency] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    account: AccountPublic


class AuthResponse(BaseModel):
    """Response model for successful authentication"""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration time in seconds")
    account: AccountPublic

    class Config:
        json_schema_extra = {
            "example": {
                "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 1800,
                "account": {"username": "promptsmith", "reward_points": 100}
            }
        }
