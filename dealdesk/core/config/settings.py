"""
Application settings module.

This module provides configuration settings for the application, including
the Redis connection used as the shared counter store and every option of the
request admission-control layer.
"""

# Standard Library Imports
import logging
import os
from typing import Any, Self

# Third-Party Imports
from pydantic import ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

FIFTEEN_MINUTES_MS = 15 * 60 * 1000
ONE_HOUR_MS = 60 * 60 * 1000
ONE_DAY_SECONDS = 24 * 60 * 60


def _default_endpoint_limits() -> dict[str, dict[str, Any]]:
    return {
        # Authentication endpoints - stricter limits
        "/api/v1/auth/login": {"window_ms": FIFTEEN_MINUTES_MS, "max": 5, "skip_successful": True},
        "/api/v1/auth/register": {"window_ms": ONE_HOUR_MS, "max": 3},
        "/api/v1/auth/forgot-password": {"window_ms": ONE_HOUR_MS, "max": 3},
        "/api/v1/auth/verify-otp": {"window_ms": FIFTEEN_MINUTES_MS, "max": 5},
        # AI endpoints - expensive operations
        "/api/v1/ai/analyze-brief": {"window_ms": ONE_HOUR_MS, "max": 20},
        "/api/v1/ai/generate-pitch": {"window_ms": ONE_HOUR_MS, "max": 20},
        "/api/v1/ai/suggest-pricing": {"window_ms": ONE_HOUR_MS, "max": 30},
        # Uploads and reports
        "/api/v1/upload": {"window_ms": FIFTEEN_MINUTES_MS, "max": 20},
        "/api/v1/reports/generate": {"window_ms": ONE_HOUR_MS, "max": 10},
        "/api/v1/bulk*": {"window_ms": ONE_HOUR_MS, "max": 5},
    }


class Settings(BaseSettings):
    """Application settings using Pydantic for validation and environment variable loading."""

    # API Information
    API_TITLE: str = "DealDesk API"
    API_DESCRIPTION: str = "Deal, invoicing and contract management for creators and agencies"
    API_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Environment
    TESTING: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production, test

    # Logging Settings
    LOG_LEVEL: str = "INFO"

    # Monitoring and Error Tracking (Sentry)
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    # Redis Configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SSL: bool = False
    REDIS_SOCKET_TIMEOUT_MS: int = Field(default=50, ge=1)

    # Rate Limiting
    RATE_LIMITING_ENABLED: bool = True
    RATE_LIMIT_BACKEND: str = "redis"  # redis, memory
    RATE_LIMIT_EXEMPT_PATHS: list[str] = Field(
        default_factory=lambda: ["/health", "/docs", "/redoc", "/openapi.json"]
    )
    RATE_LIMIT_TRUST_FORWARDED_FOR: bool = False

    RATE_LIMIT_GLOBAL_WINDOW_MS: int = Field(default=FIFTEEN_MINUTES_MS, gt=0)
    RATE_LIMIT_GLOBAL_MAX: int = Field(default=10_000, gt=0)
    RATE_LIMIT_TIER_QUOTAS: dict[str, int] = Field(
        default_factory=lambda: {
            "anonymous": 50,
            "free": 100,
            "creator": 500,
            "agency": 1000,
            "enterprise": 5000,
            "admin": 10000,
            "api": 250,
        }
    )
    RATE_LIMIT_ENDPOINTS: dict[str, dict[str, Any]] = Field(default_factory=_default_endpoint_limits)

    # Burst protection (token bucket)
    RATE_LIMIT_BURST_INITIAL_TOKENS: float = Field(default=10, ge=0)
    RATE_LIMIT_BURST_MAX_TOKENS: float = Field(default=20, gt=0)
    RATE_LIMIT_BURST_REFILL_RATE: float = Field(default=1.0, gt=0)

    # Progressive penalties
    RATE_LIMIT_ESCALATION_THRESHOLDS: list[int] = Field(default_factory=lambda: [5, 10, 20])
    RATE_LIMIT_ESCALATION_MULTIPLIERS: list[float] = Field(default_factory=lambda: [2, 4, 8])
    RATE_LIMIT_BLOCK_DURATION_SECONDS: int = Field(default=ONE_DAY_SECONDS, gt=0)
    RATE_LIMIT_VIOLATION_WINDOW_SECONDS: int = Field(default=ONE_DAY_SECONDS, gt=0)

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is one of the valid levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("RATE_LIMIT_BACKEND")
    def validate_backend(cls, v: str) -> str:
        """Validate the counter store backend name."""
        backend = v.lower()
        if backend not in ("redis", "memory"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'redis' or 'memory'")
        return backend

    @model_validator(mode="after")
    def apply_environment_defaults(self) -> Self:
        """Keep the TESTING flag in sync with a test environment."""
        if self.ENVIRONMENT == "test":
            self.TESTING = True
        return self


# Create a global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Factory function to get the application settings.

    This function enables dependency injection of settings in FastAPI.
    Under pytest the in-process counter store is selected so the suite never
    depends on a running Redis.

    Returns:
        The application settings instance
    """
    if os.environ.get("ENVIRONMENT") == "test" or os.environ.get("PYTEST_CURRENT_TEST"):
        settings.TESTING = True
        settings.ENVIRONMENT = "test"
        settings.RATE_LIMIT_BACKEND = "memory"
        settings.SENTRY_DSN = None
        logger.debug("Running in TEST environment, using in-memory counter store")
    return settings
