"""
Admission Pipeline Providers.

This module builds the counter store and the admission pipeline from
application settings. The app factory calls these once at startup and keeps
the results on ``app.state``; nothing here is a module-level singleton.
"""

import logging
import time
from collections.abc import Callable

from dealdesk.core.config.settings import Settings
from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.infrastructure.cache.in_memory_counter_store import InMemoryCounterStore
from dealdesk.infrastructure.cache.redis_counter_store import RedisCounterStore, create_redis_client
from dealdesk.infrastructure.security.rate_limiting.config import AdmissionConfig
from dealdesk.infrastructure.security.rate_limiting.pipeline import AdmissionPipeline

logger = logging.getLogger(__name__)


def create_counter_store(settings: Settings) -> ICounterStore:
    """
    Create the counter store selected by ``RATE_LIMIT_BACKEND``.

    Args:
        settings: Application settings

    Returns:
        ICounterStore: Redis store for ``redis``, in-process store for ``memory``
    """
    if settings.RATE_LIMIT_BACKEND == "memory":
        logger.info("Initializing in-memory counter store")
        return InMemoryCounterStore()

    logger.info("Initializing Redis counter store")
    return RedisCounterStore(
        create_redis_client(settings),
        timeout_seconds=settings.REDIS_SOCKET_TIMEOUT_MS / 1000,
    )


def create_admission_pipeline(
    settings: Settings,
    store: ICounterStore,
    clock: Callable[[], float] = time.time,
) -> AdmissionPipeline:
    """
    Build the admission pipeline with immutable configuration.

    Raises:
        ConfigurationError: If the rate limiting settings are invalid
    """
    config = AdmissionConfig.from_settings(settings)
    logger.info(
        f"Admission pipeline configured: {len(config.endpoint_rules)} endpoint rules, "
        f"block after {config.escalation.block_threshold} violations"
    )
    return AdmissionPipeline(store, config, clock)
