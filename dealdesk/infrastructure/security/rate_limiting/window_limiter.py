"""
Fixed Window Counter Limiter.

The core quota primitive. One counter per ``(scope, identifier)`` lives in the
shared store with a TTL equal to the window length, so expired windows clean
themselves up. Increment-and-compare is a single atomic store call: the
counter is always incremented and the new value decides admission, which
keeps concurrent instances from over-admitting.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.domain.entities.admission import QuotaSnapshot
from dealdesk.domain.value_objects.rate_limit_key import RateLimitKey
from dealdesk.infrastructure.security.rate_limiting.config import WindowRule
from dealdesk.infrastructure.security.rate_limiting.keys import window_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowResult:
    """Outcome of one window check."""

    allowed: bool
    store_key: str
    count: int
    quota: QuotaSnapshot
    retry_after_seconds: int


class FixedWindowLimiter:
    """Applies a ``WindowRule`` to a ``RateLimitKey``."""

    def __init__(self, store: ICounterStore, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock

    async def hit(self, key: RateLimitKey, rule: WindowRule) -> WindowResult:
        """
        Count one request against the window and decide admission.

        Args:
            key: Scope and identifier of the counter
            rule: Window length and maximum count

        Returns:
            WindowResult; ``allowed`` is False once the count exceeds the maximum

        Raises:
            StoreUnavailableError: If the counter store fails
        """
        store_key = window_key(key)
        state = await self._store.increment(store_key, 1, ttl_ms=rule.window_ms)

        ttl_ms = state.ttl_ms if state.ttl_ms >= 0 else rule.window_ms
        reset_at = math.ceil(self._clock() + ttl_ms / 1000)
        allowed = state.value <= rule.max_requests

        if not allowed:
            logger.debug(f"Window exceeded for {store_key}: {state.value}/{rule.max_requests}")

        return WindowResult(
            allowed=allowed,
            store_key=store_key,
            count=state.value,
            quota=QuotaSnapshot(
                limit=rule.max_requests,
                remaining=max(0, rule.max_requests - state.value),
                reset_at=reset_at,
            ),
            retry_after_seconds=rule.window_seconds,
        )

    async def refund(self, store_key: str) -> int | None:
        """
        Give back one request to a counter that still exists.

        Returns:
            The new count, or None when the window already expired
        """
        return await self._store.decrement_existing(store_key, 1)
