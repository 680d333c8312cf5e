"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from dealdesk.core.config.settings import Settings, get_settings


def test_defaults_cover_every_tier():
    settings = Settings(ENVIRONMENT="test")

    assert settings.RATE_LIMIT_TIER_QUOTAS["anonymous"] == 50
    assert settings.RATE_LIMIT_TIER_QUOTAS["admin"] == 10000
    assert settings.RATE_LIMIT_ENDPOINTS["/api/v1/auth/login"]["max"] == 5
    assert settings.TESTING is True


def test_log_level_is_normalized():
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="chatty")


def test_backend_is_validated():
    assert Settings(RATE_LIMIT_BACKEND="Memory").RATE_LIMIT_BACKEND == "memory"
    with pytest.raises(ValidationError):
        Settings(RATE_LIMIT_BACKEND="memcached")


def test_store_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(REDIS_SOCKET_TIMEOUT_MS=0)


def test_get_settings_uses_memory_backend_under_test(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "test")

    settings = get_settings()

    assert settings.RATE_LIMIT_BACKEND == "memory"
    assert settings.SENTRY_DSN is None
