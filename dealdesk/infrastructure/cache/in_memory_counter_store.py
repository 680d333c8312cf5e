"""
In-Memory Counter Store Implementation.

This module provides an in-process implementation of the counter store
interface. It mirrors the Redis semantics (lazy expiry, atomic increments,
atomic token-bucket consumption, glob patterns), which makes it suitable for
development, tests and single-instance deployments. Multi-instance deployments
must use the Redis store: this one is not shared between processes.
"""

import fnmatch
import threading
import time
from collections.abc import Callable

from dealdesk.core.interfaces.services.counter_store_interface import (
    CounterState,
    ICounterStore,
    TokenBucketState,
)


class InMemoryCounterStore(ICounterStore):
    """
    Process-local counter store.

    Every operation runs under one lock without awaiting in between, so each
    call is atomic with respect to other coroutines and threads.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Initialize empty storage.

        Args:
            clock: Source of the current epoch time in seconds
        """
        self._clock = clock
        self._values: dict[str, str] = {}
        self._sets: dict[str, set[str]] = {}
        self._expires_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def _purge_if_expired(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._values.pop(key, None)
            self._sets.pop(key, None)
            self._expires_at.pop(key, None)

    def _exists(self, key: str) -> bool:
        self._purge_if_expired(key)
        return key in self._values or key in self._sets

    def _live_keys(self) -> list[str]:
        for key in list(self._expires_at):
            self._purge_if_expired(key)
        return [*self._values, *self._sets]

    async def get(self, key: str) -> str | None:
        with self._lock:
            self._purge_if_expired(key)
            return self._values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        with self._lock:
            self._values[key] = value
            if ttl_seconds is not None:
                self._expires_at[key] = self._clock() + ttl_seconds
            else:
                self._expires_at.pop(key, None)

    async def increment(self, key: str, amount: int = 1, ttl_ms: int | None = None) -> CounterState:
        with self._lock:
            self._purge_if_expired(key)
            value = int(self._values.get(key, "0")) + amount
            self._values[key] = str(value)
            if key not in self._expires_at and ttl_ms:
                self._expires_at[key] = self._clock() + ttl_ms / 1000
            return CounterState(value=value, ttl_ms=self._ttl_ms(key))

    async def decrement_existing(self, key: str, amount: int = 1) -> int | None:
        with self._lock:
            self._purge_if_expired(key)
            if key not in self._values:
                return None
            value = max(0, int(self._values[key]) - amount)
            self._values[key] = str(value)
            return value

    async def delete(self, *keys: str) -> int:
        with self._lock:
            deleted = 0
            for key in keys:
                if self._exists(key):
                    deleted += 1
                self._values.pop(key, None)
                self._sets.pop(key, None)
                self._expires_at.pop(key, None)
            return deleted

    async def keys(self, pattern: str) -> list[str]:
        with self._lock:
            return [key for key in self._live_keys() if fnmatch.fnmatchcase(key, pattern)]

    async def delete_by_pattern(self, pattern: str) -> int:
        matched = await self.keys(pattern)
        return await self.delete(*matched)

    def _ttl_ms(self, key: str) -> int:
        expires_at = self._expires_at.get(key)
        if expires_at is None:
            return -1
        return max(0, int((expires_at - self._clock()) * 1000))

    async def ttl(self, key: str) -> int | None:
        with self._lock:
            if not self._exists(key):
                return None
            remaining = self._ttl_ms(key)
            return remaining if remaining < 0 else remaining // 1000

    async def set_add(self, set_key: str, member: str) -> bool:
        with self._lock:
            self._purge_if_expired(set_key)
            members = self._sets.setdefault(set_key, set())
            if member in members:
                return False
            members.add(member)
            return True

    async def set_remove(self, set_key: str, member: str) -> bool:
        with self._lock:
            self._purge_if_expired(set_key)
            members = self._sets.get(set_key)
            if not members or member not in members:
                return False
            members.discard(member)
            if not members:
                del self._sets[set_key]
            return True

    async def set_is_member(self, set_key: str, member: str) -> bool:
        with self._lock:
            self._purge_if_expired(set_key)
            return member in self._sets.get(set_key, set())

    async def take_token(
        self,
        key: str,
        *,
        initial_tokens: float,
        max_tokens: float,
        refill_rate: float,
        now: float,
        ttl_seconds: int,
    ) -> TokenBucketState:
        with self._lock:
            self._purge_if_expired(key)
            tokens, last_refill = initial_tokens, now
            raw = self._values.get(key)
            if raw is not None:
                stored_tokens, _, stored_last = raw.partition(":")
                tokens, last_refill = float(stored_tokens), float(stored_last)

            elapsed = max(0.0, now - last_refill)
            tokens = min(max_tokens, tokens + elapsed * refill_rate)
            allowed = tokens >= 1
            if allowed:
                tokens -= 1

            self._values[key] = f"{tokens:.6f}:{max(now, last_refill):.6f}"
            self._expires_at[key] = self._clock() + ttl_seconds
            return TokenBucketState(allowed=allowed, tokens=tokens)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        with self._lock:
            self._values.clear()
            self._sets.clear()
            self._expires_at.clear()
