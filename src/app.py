from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.api.middleware.security.rate_limiter import EnhancedRateLimitMiddleware
from src.api.router import auth, communities, health, prompts, rewards, subscriptions, trends
from src.core.exceptions.handler import GlobalErrorHandler, ServiceError
from src.core.logger.logger import logger
from src.core.service.reward.reward_service import RewardService
from src.core.service.subscription.subscription_service import SubscriptionService
from src.infra.config.settings import settings
from src.infra.database import get_database_manager


async def seed_catalogs() -> None:
    """Create missing tables, then upsert the built-in plans and medals."""
    db_manager = get_database_manager()
    await db_manager.create_tables()
    async with db_manager.get_session_factory()() as session:
        await SubscriptionService(session).seed_plans()
        await RewardService(session).seed_reward_types()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
PromptPalace API - a community for sharing AI prompts.

## Services
- **Accounts**: email/password registration with OTP verification, JWT sessions
- **Subscriptions**: plan catalog, free trial, usage and storage entitlements
- **Prompts**: prompt authoring with hosted images
- **Communities & Trends**: posting, voting, comments
- **Rewards**: medals with points transfer, per-trend summaries, leaderboard

## Authentication
All protected endpoints require JWT Bearer token authentication.
        """,
        version=settings.APP_VERSION,
        docs_url="/",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,  # 10 minutes
    )

    # Rate limiting middleware
    app.add_middleware(EnhancedRateLimitMiddleware, enabled=settings.RATE_LIMIT_ENABLED)

    # Request logging middleware (added last so it wraps everything)
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(StarletteHTTPException, GlobalErrorHandler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(subscriptions.router, prefix="/api/v1")
    app.include_router(subscriptions.admin_router, prefix="/api/v1")
    app.include_router(prompts.router, prefix="/api/v1")
    app.include_router(communities.router, prefix="/api/v1")
    app.include_router(trends.router, prefix="/api/v1")
    app.include_router(rewards.router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info(
            "Starting API",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
        )

        if settings.SEED_CATALOG_ON_STARTUP:
            try:
                await seed_catalogs()
            except Exception as e:
                logger.error(f"Failed to seed catalogs on startup: {str(e)}", exc_info=True)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(
            "Shutting down API",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
        )
        await get_database_manager().close()

    return app
