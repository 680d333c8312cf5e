"""
Central conftest.py for the DealDesk test suite.

Fixtures shared by every test: a controllable clock, counter stores bound to
it, and factories for admission configuration and pipelines.
"""

import logging
from collections.abc import Callable
from typing import Any

import pytest

from dealdesk.core.config.settings import Settings
from dealdesk.infrastructure.cache.in_memory_counter_store import InMemoryCounterStore
from dealdesk.infrastructure.security.rate_limiting.config import AdmissionConfig
from dealdesk.infrastructure.security.rate_limiting.pipeline import AdmissionPipeline
from dealdesk.tests.mocks.flaky_counter_store import FlakyCounterStore

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def flaky_store(clock: FakeClock) -> FlakyCounterStore:
    return FlakyCounterStore(clock=clock)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build isolated settings using the in-memory backend."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "ENVIRONMENT": "test",
            "RATE_LIMIT_BACKEND": "memory",
            "SENTRY_DSN": None,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_config(make_settings) -> Callable[..., AdmissionConfig]:
    def _make(**overrides: Any) -> AdmissionConfig:
        return AdmissionConfig.from_settings(make_settings(**overrides))

    return _make


@pytest.fixture
def make_pipeline(memory_store, clock, make_config) -> Callable[..., AdmissionPipeline]:
    """Build a pipeline over the in-memory store; pass ``store=`` to use another one."""

    def _make(store=None, **overrides: Any) -> AdmissionPipeline:
        return AdmissionPipeline(store or memory_store, make_config(**overrides), clock)

    return _make


@pytest.fixture
def pipeline(make_pipeline) -> AdmissionPipeline:
    return make_pipeline()


@pytest.fixture
def app_caplog(caplog):
    """``caplog`` that also sees the ``dealdesk`` loggers, which do not propagate once configured."""
    app_logger = logging.getLogger("dealdesk")
    app_logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="dealdesk")
    yield caplog
    app_logger.removeHandler(caplog.handler)
