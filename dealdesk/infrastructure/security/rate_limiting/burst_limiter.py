"""
Burst Limiter.

Continuous-refill token bucket per identifier. It runs after the window
layers and smooths spikes shorter than a window. Refill and consumption
happen in one atomic store call.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.infrastructure.security.rate_limiting.config import BurstConfig
from dealdesk.infrastructure.security.rate_limiting.keys import burst_key

logger = logging.getLogger(__name__)

BURST_RETRY_AFTER_SECONDS = 1


@dataclass(frozen=True)
class BurstResult:
    allowed: bool
    tokens: float

    @property
    def whole_tokens(self) -> int:
        return int(self.tokens)


class TokenBucketLimiter:
    """Token bucket backed by the shared counter store."""

    def __init__(
        self,
        store: ICounterStore,
        config: BurstConfig,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._config = config
        self._clock = clock

    async def consume(self, identifier: str) -> BurstResult:
        """
        Refill the caller's bucket and try to take one token.

        Raises:
            StoreUnavailableError: If the counter store fails
        """
        state = await self._store.take_token(
            burst_key(identifier),
            initial_tokens=self._config.initial_tokens,
            max_tokens=self._config.max_tokens,
            refill_rate=self._config.refill_rate,
            now=self._clock(),
            ttl_seconds=self._config.idle_ttl_seconds,
        )
        if not state.allowed:
            logger.debug(f"Burst bucket empty for {identifier}")
        return BurstResult(allowed=state.allowed, tokens=state.tokens)

    async def peek(self, identifier: str) -> float | None:
        """
        Tokens the bucket would hold right now, without consuming any.

        Returns:
            Current token count, or None when the caller has no bucket
        """
        raw = await self._store.get(burst_key(identifier))
        if raw is None:
            return None
        stored_tokens, _, stored_last = raw.partition(":")
        elapsed = max(0.0, self._clock() - float(stored_last))
        return min(self._config.max_tokens, float(stored_tokens) + elapsed * self._config.refill_rate)
