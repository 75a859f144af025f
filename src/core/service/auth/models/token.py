from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.core.utils.clock import utc_now


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """JWT token payload structure"""
    sub: str = Field(..., description="Account id")
    exp: datetime = Field(..., description="Token expiration timestamp")
    iat: datetime = Field(..., description="Token issued at timestamp")
    type: TokenType = Field(..., description="Token type (access or refresh)")
    jti: str = Field(..., description="Unique token identifier for blacklisting")


class TokenResponse(BaseModel):
    """Response model for token generation"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires


class TokenBlacklist(BaseModel):
    """Model for blacklisted tokens"""
    jti: str
    exp: datetime
    blacklisted_at: datetime = Field(default_factory=utc_now)
    reason: Optional[str] = None
