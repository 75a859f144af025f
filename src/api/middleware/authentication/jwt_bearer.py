from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.core.exceptions.base import UnauthorizedError
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class CustomHTTPBearer(HTTPBearer):
    """
    Extracts the bearer token from the Authorization header.
    Missing or malformed headers are 401 (HTTPBearer alone answers 403).
    Signature, expiry and revocation are checked by JWTService.
    """

    def __init__(self, auto_error: bool = True):
        super().__init__(auto_error=False)
        self.required = auto_error

    async def __call__(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            if self.required:
                raise UnauthorizedError("Not authenticated")
            return None

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            logger.info("Rejected authorization header", extra={"path": request.url.path})
            raise UnauthorizedError("Invalid authorization header")

        return parts[1]


bearer_scheme = CustomHTTPBearer()
optional_bearer_scheme = CustomHTTPBearer(auto_error=False)
