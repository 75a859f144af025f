from datetime import datetime
from typing import Optional
from fastapi import status

from src.core.exceptions.base import ServiceError, ServiceErrorCode


class InvalidRewardType(ServiceError):
    def __init__(self, message: str = "Invalid or inactive reward type"):
        super().__init__(
            code=ServiceErrorCode.INVALID_REWARD_TYPE,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class ContentNotFound(ServiceError):
    def __init__(self, message: str = "Trend not found"):
        super().__init__(
            code=ServiceErrorCode.CONTENT_NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class SelfRewardForbidden(ServiceError):
    def __init__(self, message: str = "You cannot reward your own content"):
        super().__init__(
            code=ServiceErrorCode.SELF_REWARD_FORBIDDEN,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class DailyLimitReached(ServiceError):
    def __init__(self, medal_name: str, daily_limit: int, retry_after: Optional[datetime] = None):
        super().__init__(
            code=ServiceErrorCode.DAILY_LIMIT_REACHED,
            message=f"Daily limit reached for {medal_name}. You can give {daily_limit} per day.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"daily_limit": daily_limit},
            retry_after=retry_after,
        )


class CooldownActive(ServiceError):
    def __init__(self, medal_name: str, minutes_left: int, retry_after: datetime):
        super().__init__(
            code=ServiceErrorCode.COOLDOWN_ACTIVE,
            message=f"Please wait {minutes_left} minutes before giving another {medal_name}",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"minutes_left": minutes_left},
            retry_after=retry_after,
        )


class InsufficientPoints(ServiceError):
    def __init__(self, required: int, available: int):
        super().__init__(
            code=ServiceErrorCode.INSUFFICIENT_POINTS,
            message=f"Insufficient reward points. You need {required} points.",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"required": required, "available": available},
        )
