from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import status


class ServiceErrorCode:
    """Standard error codes for services"""

    # Validation
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FORMAT = "INVALID_FORMAT"

    # Authentication
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_OTP = "INVALID_OTP"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"
    FORBIDDEN = "FORBIDDEN"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Rate Limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    IP_BLOCKED = "IP_BLOCKED"

    # Entitlements
    ENTITLEMENT_DENIED = "ENTITLEMENT_DENIED"

    # Rewards
    INVALID_REWARD_TYPE = "INVALID_REWARD_TYPE"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    SELF_REWARD_FORBIDDEN = "SELF_REWARD_FORBIDDEN"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"

    # System
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class ServiceError(Exception):
    """
    Standardized service error for internal use.
    Gets converted to proper HTTP response by error handler.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        retry_after: Optional[datetime] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.context = context or {}
        self.retry_after = retry_after
        super().__init__(message)


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ValidationFailed(ServiceError):
    def __init__(self, message: str = "Validation error", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.INVALID_INPUT,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class BadRequestError(ServiceError):
    def __init__(self, message: str, code: str = ServiceErrorCode.INVALID_INPUT, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class UnauthorizedError(ServiceError):
    def __init__(self, message: str = "Unauthorized", code: str = ServiceErrorCode.INVALID_TOKEN):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenError(ServiceError):
    def __init__(self, message: str = "Forbidden", code: str = ServiceErrorCode.FORBIDDEN):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ConflictError(ServiceError):
    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.CONFLICT,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class EntitlementDenied(ServiceError):
    """Raised by handlers when an entitlement Decision comes back denied."""

    def __init__(
        self,
        reason: str,
        reset_date: Optional[datetime] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        if reset_date is not None:
            details["reset_date"] = reset_date.isoformat()
        super().__init__(
            code=ServiceErrorCode.ENTITLEMENT_DENIED,
            message=reason,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
            retry_after=reset_date,
        )

    @classmethod
    def from_decision(cls, decision) -> "EntitlementDenied":
        return cls(
            reason=decision.reason or "Action not permitted by your plan",
            reset_date=decision.reset_date,
        )


class UpstreamError(ServiceError):
    def __init__(self, message: str = "Upstream service failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.UPSTREAM_ERROR,
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
        )
