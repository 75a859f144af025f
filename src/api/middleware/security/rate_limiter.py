from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Match

from src.core.exceptions.handler import ErrorResponseBuilder, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

API_PREFIX = "/api/v1"
SKIP_PATHS = {f"{API_PREFIX}/health", "/", "/docs", "/redoc", "/openapi.json"}
# Failed attempts on these count toward blocking the client IP
CREDENTIAL_PATHS = {
    f"{API_PREFIX}/auth/login",
    f"{API_PREFIX}/auth/verify-email",
    f"{API_PREFIX}/auth/reset-password",
}
# Requests that match no route share one bucket
UNMATCHED_BUCKET = "unmatched"
WINDOW = timedelta(minutes=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def bucket_path(request: Request) -> str:
    """Path template of the route a request will hit, e.g. /api/v1/prompts/{prompt_id}"""
    route = request.scope.get("route")
    if route is not None:
        return route.path

    partial = None
    for candidate in request.app.router.routes:
        match, _ = candidate.matches(request.scope)
        if match == Match.FULL:
            return candidate.path
        if match == Match.PARTIAL and partial is None:
            partial = candidate.path
    return partial or UNMATCHED_BUCKET


class EnhancedRateLimiter:
    """Sliding one-minute window per (endpoint, IP), plus temporary IP blocks."""

    def __init__(self):
        # endpoint -> IP -> timestamps
        self.endpoint_requests: Dict[str, Dict[str, List[datetime]]] = {}
        self.blocked_ips: Dict[str, datetime] = {}  # IP -> unblock time
        self.failed_attempts: Dict[str, Tuple[int, datetime]] = {}  # IP -> (count, first attempt)
        self.last_sweep = _now()

        # requests per minute
        self.endpoint_limits = {
            f"{API_PREFIX}/auth/login": settings.RATE_LIMIT_AUTH_LOGIN,
            f"{API_PREFIX}/auth/register": settings.RATE_LIMIT_AUTH_REGISTER,
            f"{API_PREFIX}/auth/verify-email": settings.RATE_LIMIT_AUTH_OTP,
            f"{API_PREFIX}/auth/resend-otp": settings.RATE_LIMIT_AUTH_OTP,
            f"{API_PREFIX}/auth/forgot-password": settings.RATE_LIMIT_AUTH_OTP,
            f"{API_PREFIX}/auth/reset-password": settings.RATE_LIMIT_AUTH_OTP,
            f"{API_PREFIX}/auth/refresh": settings.RATE_LIMIT_AUTH_REFRESH,
        }
        self.default_limit = settings.RATE_LIMIT_DEFAULT

    def limit_for(self, method: str, endpoint: str) -> Tuple[str, int]:
        """Returns the bucket key and its limit. All reward gives share one bucket."""
        if method == "POST" and endpoint.startswith(f"{API_PREFIX}/trends/") and endpoint.endswith("/rewards"):
            return "reward", settings.RATE_LIMIT_REWARD
        return endpoint, self.endpoint_limits.get(endpoint, self.default_limit)

    def is_blocked(self, ip: str) -> Optional[datetime]:
        unblock_at = self.blocked_ips.get(ip)
        if unblock_at is None:
            return None
        if _now() < unblock_at:
            return unblock_at
        del self.blocked_ips[ip]
        return None

    def is_rate_limited(self, ip: str, bucket: str, limit: int) -> Tuple[bool, int, datetime]:
        """Returns (is_limited, current_count, reset_time)"""
        now = _now()
        window = self.endpoint_requests.get(bucket, {})
        recent = [ts for ts in window.get(ip, []) if now - ts < WINDOW]
        if recent:
            window[ip] = recent
        else:
            window.pop(ip, None)
            if not window:
                self.endpoint_requests.pop(bucket, None)

        current_count = len(recent)
        reset_time = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        return current_count >= limit, current_count, reset_time

    def add_request(self, ip: str, bucket: str) -> None:
        now = _now()
        if now - self.last_sweep >= WINDOW:
            self.sweep(now)
        self.endpoint_requests.setdefault(bucket, {}).setdefault(ip, []).append(now)

    def sweep(self, now: datetime) -> None:
        """Drop every IP with no request inside the window, and buckets left empty"""
        for bucket in list(self.endpoint_requests):
            window = self.endpoint_requests[bucket]
            for ip in list(window):
                recent = [ts for ts in window[ip] if now - ts < WINDOW]
                if recent:
                    window[ip] = recent
                else:
                    del window[ip]
            if not window:
                del self.endpoint_requests[bucket]

        for ip in [ip for ip, unblock_at in self.blocked_ips.items() if unblock_at <= now]:
            del self.blocked_ips[ip]
        for ip in [ip for ip, (_, first) in self.failed_attempts.items() if now - first >= timedelta(minutes=5)]:
            del self.failed_attempts[ip]
        self.last_sweep = now

    def record_failed_attempt(self, ip: str) -> None:
        now = _now()
        count, first_attempt = self.failed_attempts.get(ip, (0, now))
        if now - first_attempt >= timedelta(minutes=5):
            count, first_attempt = 0, now

        count += 1
        if count >= settings.SUSPICIOUS_IP_THRESHOLD:
            self.block_ip(ip)
            self.failed_attempts.pop(ip, None)
        else:
            self.failed_attempts[ip] = (count, first_attempt)

    def block_ip(self, ip: str) -> None:
        self.blocked_ips[ip] = _now() + timedelta(minutes=settings.IP_BLOCK_DURATION)
        logger.warning(
            "IP blocked for suspicious activity",
            extra={"client_ip": ip, "block_minutes": settings.IP_BLOCK_DURATION}
        )


class EnhancedRateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with endpoint-specific limits"""

    def __init__(self, app, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled
        self.rate_limiter = EnhancedRateLimiter()

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"

    def _reject(self, code: str, message: str, status_code: int, retry_after: int, request: Request) -> Response:
        body = ErrorResponseBuilder.build_error_response(
            error_code=code,
            message=message,
            status_code=status_code,
            details={"retry_after": retry_after},
            request_id=request.headers.get("X-Request-ID"),
        )
        return JSONResponse(status_code=status_code, content=body, headers={"Retry-After": str(retry_after)})

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.enabled or request.method == "OPTIONS" or request.url.path in SKIP_PATHS:
            return await call_next(request)

        ip = self._get_client_ip(request)
        endpoint = request.url.path

        unblock_at = self.rate_limiter.is_blocked(ip)
        if unblock_at is not None:
            logger.warning("Blocked request", extra={"client_ip": ip, "path": endpoint})
            retry_after = max(1, int((unblock_at - _now()).total_seconds()))
            return self._reject(
                ServiceErrorCode.IP_BLOCKED,
                "IP temporarily blocked due to suspicious activity",
                403,
                retry_after,
                request,
            )

        bucket, limit = self.rate_limiter.limit_for(request.method, bucket_path(request))
        is_limited, current_count, reset_time = self.rate_limiter.is_rate_limited(ip, bucket, limit)
        if is_limited:
            logger.warning(
                "Rate limit exceeded",
                extra={"client_ip": ip, "path": endpoint, "count": current_count, "limit": limit}
            )
            response = self._reject(
                ServiceErrorCode.RATE_LIMIT_EXCEEDED,
                f"Rate limit exceeded. Maximum {limit} requests per minute.",
                429,
                60,
                request,
            )
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = "0"
            response.headers["X-RateLimit-Reset"] = str(int(reset_time.timestamp()))
            return response

        self.rate_limiter.add_request(ip, bucket)

        response = await call_next(request)

        if response.status_code in (401, 403) and endpoint in CREDENTIAL_PATHS:
            self.rate_limiter.record_failed_attempt(ip)
            logger.info("Recorded failed credential attempt", extra={"client_ip": ip, "path": endpoint})

        if response.status_code < 400:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count - 1))
            response.headers["X-RateLimit-Reset"] = str(int(reset_time.timestamp()))

        return response
