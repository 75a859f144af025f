import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

import jwt
from redis.asyncio import Redis
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from src.core.exceptions.base import BadRequestError, ServiceErrorCode, UnauthorizedError
from src.core.logger.logger import get_logger
from src.core.service.auth.cache.token_store import TokenStore
from src.core.service.auth.models.token import TokenPayload, TokenResponse, TokenType
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class JWTService:
    """Service for handling JWT token operations"""

    def __init__(self, redis_client: Redis):
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.access_token_expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
        self.refresh_token_expire_days = settings.REFRESH_TOKEN_EXPIRE_DAYS
        self.token_store = TokenStore(redis_client)

    def _create_token(
        self,
        account_id: UUID,
        token_type: TokenType,
        expires_delta: Optional[timedelta] = None
    ) -> Tuple[str, datetime]:
        """
        Create a JWT token with the given parameters
        Returns the token string and its expiration datetime
        """
        if expires_delta is None:
            if token_type == TokenType.ACCESS:
                expires_delta = timedelta(minutes=self.access_token_expire_minutes)
            else:
                expires_delta = timedelta(days=self.refresh_token_expire_days)

        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + expires_delta

        to_encode = TokenPayload(
            sub=str(account_id),
            exp=expires_at,
            iat=issued_at,
            type=token_type,
            jti=str(uuid.uuid4())
        )

        encoded_jwt = jwt.encode(
            to_encode.model_dump(),
            self.secret_key,
            algorithm=self.algorithm
        )

        return encoded_jwt, expires_at

    async def create_tokens(self, account_id: UUID) -> TokenResponse:
        """Generate new access and refresh token pair"""
        access_token, access_exp = self._create_token(account_id, TokenType.ACCESS)
        refresh_token, _ = self._create_token(account_id, TokenType.REFRESH)

        expires_in = int((access_exp - datetime.now(timezone.utc)).total_seconds())

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in
        )

    async def verify_token(self, token: str, expected_type: TokenType) -> TokenPayload:
        """
        Verify a JWT token and return its payload
        Raises UnauthorizedError if token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm]
            )
            token_data = TokenPayload(**payload)

        except ExpiredSignatureError:
            logger.info("Token expired", extra={"token_type": expected_type.value})
            raise UnauthorizedError("Token has expired", code=ServiceErrorCode.TOKEN_EXPIRED)

        except (InvalidTokenError, ValueError) as e:
            logger.warning(
                "Invalid token",
                extra={"token_type": expected_type.value, "error": str(e)}
            )
            raise UnauthorizedError("Invalid token")

        if token_data.type != expected_type:
            logger.warning(
                "Token type mismatch",
                extra={
                    "expected_type": expected_type.value,
                    "actual_type": token_data.type.value,
                    "account_id": token_data.sub
                }
            )
            raise UnauthorizedError("Invalid token type")

        if await self.token_store.is_blacklisted(token_data.jti):
            logger.warning(
                "Blacklisted token used",
                extra={"jti": token_data.jti, "account_id": token_data.sub}
            )
            raise UnauthorizedError("Token has been revoked")

        return token_data

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Generate a new token pair from a valid refresh token.
        The used refresh token is blacklisted (rotation).
        """
        token_data = await self.verify_token(refresh_token, TokenType.REFRESH)

        new_tokens = await self.create_tokens(UUID(token_data.sub))

        await self.token_store.add_to_blacklist(
            jti=token_data.jti,
            exp=token_data.exp,
            reason="Refresh token rotation"
        )

        return new_tokens

    async def revoke_token(self, token: str, reason: Optional[str] = None) -> None:
        """
        Revoke a token by adding it to the blacklist
        This can be used for both access and refresh tokens
        """
        try:
            # Signature is not checked so already-expired tokens can still be revoked
            payload = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False}
            )
            token_data = TokenPayload(**payload)
        except (InvalidTokenError, ValueError) as e:
            logger.warning("Failed to revoke token", extra={"error": str(e)})
            raise BadRequestError("Invalid token format", code=ServiceErrorCode.INVALID_TOKEN)

        await self.token_store.add_to_blacklist(
            jti=token_data.jti,
            exp=token_data.exp,
            reason=reason
        )
