"""
Interface for the shared counter store.

The admission-control layer keeps all contested state (window counters, token
buckets, violation trails, block and whitelist records) in a low-latency
key-value store shared by every service instance. This interface is the only
surface the admission stages depend on; Redis and in-process implementations
live in the infrastructure layer.

Every method raises ``StoreUnavailableError`` when the backing store fails or
times out. Implementations must never swallow those failures: the decision to
fail open belongs to the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterState:
    """Result of an atomic increment."""

    value: int
    ttl_ms: int  # Remaining lifetime of the counter, -1 when it never expires


@dataclass(frozen=True)
class TokenBucketState:
    """Result of an atomic refill-and-consume on a token bucket."""

    allowed: bool
    tokens: float  # Tokens left after the attempt


class ICounterStore(ABC):
    """Interface for shared counter store operations."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the string value stored at ``key`` or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store ``value`` at ``key``, expiring after ``ttl_seconds`` when given."""

    @abstractmethod
    async def increment(self, key: str, amount: int = 1, ttl_ms: int | None = None) -> CounterState:
        """
        Atomically add ``amount`` to the integer at ``key``.

        A missing key is created with the increment as its value and, when
        ``ttl_ms`` is given, that lifetime. Existing keys keep their expiry.

        Args:
            key: Counter key
            amount: Value to add
            ttl_ms: Lifetime applied when the counter is created

        Returns:
            CounterState with the new value and remaining lifetime
        """

    @abstractmethod
    async def decrement_existing(self, key: str, amount: int = 1) -> int | None:
        """
        Atomically subtract ``amount`` from an existing counter, never below zero.

        Returns:
            The new value, or None when the counter no longer exists
        """

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete the given keys and return how many existed."""

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob ``pattern`` and return the count."""

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """Return every key matching the glob ``pattern``."""

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """
        Return the remaining lifetime of ``key`` in seconds.

        Returns:
            Seconds to expiry, -1 when the key never expires, None when absent
        """

    @abstractmethod
    async def set_add(self, set_key: str, member: str) -> bool:
        """Add ``member`` to the set; True when it was not already present."""

    @abstractmethod
    async def set_remove(self, set_key: str, member: str) -> bool:
        """Remove ``member`` from the set; True when it was present."""

    @abstractmethod
    async def set_is_member(self, set_key: str, member: str) -> bool:
        """Return whether ``member`` belongs to the set."""

    @abstractmethod
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
        """
        Refill and consume one token from the bucket at ``key`` in one atomic step.

        The bucket is refilled to ``min(max_tokens, tokens + elapsed * refill_rate)``
        before the attempt. A missing bucket starts at ``initial_tokens``.

        Args:
            key: Bucket key
            initial_tokens: Tokens of a bucket that does not exist yet
            max_tokens: Bucket capacity
            refill_rate: Tokens added per second
            now: Current time in epoch seconds
            ttl_seconds: Lifetime of an idle bucket

        Returns:
            TokenBucketState telling whether a token was consumed
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity with the store."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the store."""
