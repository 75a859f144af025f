from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, Request, status
from redis.asyncio import Redis

from src.core.dependencies import get_redis_client
from src.core.logger.logger import get_logger
from src.infra.config.redis import ping_redis
from src.infra.config.settings import settings
from src.infra.database import DatabaseManager, get_database_manager

logger = get_logger(__name__)
router = APIRouter(tags=["Health"])


async def check_database_health(db_manager: DatabaseManager) -> Dict[str, str]:
    if await db_manager.ping():
        return {"status": "healthy", "message": "Connected"}
    return {"status": "unhealthy", "message": "Connection failed"}


async def check_redis_health(redis_client: Redis) -> Dict[str, str]:
    if await ping_redis(redis_client):
        return {"status": "healthy", "message": "Connected"}
    # Reward locks fall back to transactional guarantees without Redis
    return {"status": "degraded", "message": "Connection failed"}


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(
    request: Request,
    db_manager: DatabaseManager = Depends(get_database_manager),
    redis_client: Redis = Depends(get_redis_client)
):
    """
    Health check with dependency status.
    The database is required; Redis only degrades the service.
    """
    services = {
        "database": (await check_database_health(db_manager))["status"],
        "redis": (await check_redis_health(redis_client))["status"],
        "api": "healthy",
    }

    overall_status = "healthy"
    if any(state == "unhealthy" for state in services.values()):
        overall_status = "unhealthy"
    elif any(state == "degraded" for state in services.values()):
        overall_status = "degraded"

    if overall_status != "healthy":
        logger.warning(
            "Health check not healthy",
            extra={"services": services, "request_id": request.headers.get("X-Request-ID", "N/A")}
        )

    return {
        "status": overall_status,
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "services": services,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
