from typing import List, Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "PromptPalace"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Security Settings
    JWT_SECRET_KEY: str = "your-secret-key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TOKEN_BLACKLIST_EXPIRE_MARGIN_MINUTES: int = 5  # Extra time to keep blacklisted tokens

    # Rate Limiting
    SUSPICIOUS_IP_THRESHOLD: int = 5  # failed attempts before blocking
    IP_BLOCK_DURATION: int = 15  # minutes

    RATE_LIMIT_ENABLED: bool = True

    # Endpoint-specific rate limits (requests per minute)
    RATE_LIMIT_AUTH_LOGIN: int = 10
    RATE_LIMIT_AUTH_REGISTER: int = 5
    RATE_LIMIT_AUTH_OTP: int = 5
    RATE_LIMIT_AUTH_REFRESH: int = 10
    RATE_LIMIT_REWARD: int = 20
    RATE_LIMIT_DEFAULT: int = 120

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "https://app.promptpalace.com",  # Production frontend
    ]

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # PostgreSQL Settings
    DATABASE_URL: Optional[str] = None  # Overrides the POSTGRES_* settings when set
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "promptpalace"
    POSTGRES_MIN_POOL_SIZE: int = 5
    POSTGRES_MAX_POOL_SIZE: int = 20
    DB_LOGGING_ENABLED: bool = False
    SEED_CATALOG_ON_STARTUP: bool = True

    # OTP Settings
    OTP_EXPIRY_MINUTES: int = 10
    OTP_LENGTH: int = 6

    # Reward Settings
    SIGNUP_REWARD_POINTS: int = 100
    REWARD_LOCK_TIMEOUT_SECONDS: int = 10
    REWARD_LOCK_BLOCKING_SECONDS: float = 2.0
    LEADERBOARD_DEFAULT_LIMIT: int = 20
    LEADERBOARD_MAX_LIMIT: int = 100

    # Subscription Settings
    FREE_TRIAL_DAYS: int = 30
    DEFAULT_STORAGE_LIMIT_MB: int = 100

    # Mail Settings
    RESEND_API_KEY: Optional[str] = None
    MAIL_FROM: str = "PromptPalace <no-reply@promptpalace.com>"
    CLIENT_URL: str = "http://localhost:3000"

    # Image Hosting Settings
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "prompt_images"

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
