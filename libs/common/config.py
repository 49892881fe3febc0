from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    # Placeholder keeps local/test runs from failing; real deployments override via env.
    AUTH_JWT_SECRET: str = "test-jwt-secret"

    # Razorpay
    RAZORPAY_API_BASE_URL: str = "https://api.razorpay.com/v1"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    # Empty means every webhook is rejected.
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAYX_ACCOUNT_NUMBER: str = ""

    # Payments
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_INTENT_TTL_MINUTES: int = 20
    WEBHOOK_RATE_LIMIT: str = "100/minute"
    # Reverse proxies in front of the service that append to X-Forwarded-For.
    # 0 means the header is ignored and the socket address is used.
    TRUSTED_PROXY_COUNT: int = 0

    # Microservices URLs
    CATALOG_SERVICE_URL: str = "http://catalog-service:8001"
    STUDENTS_SERVICE_URL: str = "http://students-service:8002"
    EDUCATORS_SERVICE_URL: str = "http://educators-service:8003"
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"

    # Redis (arq worker + rate limiter)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_STORAGE_URI: Optional[str] = None

    # Email
    SMTP_HOST: str = "smtp-relay.brevo.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    DEFAULT_FROM_EMAIL: str = "no-reply@edumarket.in"
    DEFAULT_FROM_NAME: str = "EduMarket"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
