from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "YB News API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Security settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    RESET_TOKEN_EXPIRE_MINUTES: int = 10
    BCRYPT_ROUNDS: int = 12

    # OTP settings
    OTP_EXPIRY_MINUTES: int = 3
    OTP_RESEND_COOLDOWN_SECONDS: int = 180

    # Database settings (PostgreSQL in production)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10
    DB_CONNECT_TIMEOUT: int = 10
    DB_PRE_PING: bool = True

    # CORS settings
    FRONTEND_URL: Optional[str] = None
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    # SMTP / Email settings
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "YB News"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT: int = 15
    SMTP_DEBUG: bool = False

    # Rate limits (slowapi / limits notation)
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "10/15 minutes"
    OTP_RATE_LIMIT: str = "1/3 minutes"

    # News source (newsapi.org)
    NEWSAPI_KEY: Optional[str] = None
    NEWSAPI_BASE_URL: str = "https://newsapi.org/v2"
    NEWS_CACHE_TTL_SECONDS: int = 300
    NEWS_CACHE_MAX_ENTRIES: int = 512
    NEWS_HTTP_TIMEOUT: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> List[str]:
        if self.FRONTEND_URL:
            return [self.FRONTEND_URL]
        return self.ALLOWED_ORIGINS

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable is required")

if not settings.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")
