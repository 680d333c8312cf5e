"""
Redis counter store implementation.

This module implements the counter store interface on top of the redis-py
asyncio client. Every read-modify-write the admission layer relies on runs as
a single server-side Lua script, so concurrent instances hitting the same key
never observe each other's intermediate state.

Each call carries a short timeout. Driver errors and timeouts are translated
into ``StoreUnavailableError`` and left for the caller to handle.
"""

import asyncio
import logging
import urllib.parse
from collections.abc import Awaitable
from typing import Any, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from dealdesk.core.config.settings import Settings
from dealdesk.core.exceptions import StoreUnavailableError
from dealdesk.core.interfaces.services.counter_store_interface import (
    CounterState,
    ICounterStore,
    TokenBucketState,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# KEYS[1] counter; ARGV[1] amount, ARGV[2] ttl in ms (0 = none)
INCREMENT_SCRIPT = """
local value = redis.call('INCRBY', KEYS[1], ARGV[1])
local ttl = redis.call('PTTL', KEYS[1])
local requested = tonumber(ARGV[2])
if ttl < 0 and requested > 0 then
  redis.call('PEXPIRE', KEYS[1], requested)
  ttl = requested
end
return {value, ttl}
"""

# KEYS[1] counter; ARGV[1] amount
DECREMENT_EXISTING_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if not current then
  return false
end
local amount = tonumber(ARGV[1])
local value = tonumber(current)
if value - amount < 0 then
  amount = value
end
return redis.call('DECRBY', KEYS[1], amount)
"""

# KEYS[1] bucket; ARGV: initial, capacity, refill rate, now, ttl seconds
# The bucket is stored as "<tokens>:<last refill epoch seconds>"
TOKEN_BUCKET_SCRIPT = """
local initial = tonumber(ARGV[1])
local capacity = tonumber(ARGV[2])
local rate = tonumber(ARGV[3])
local now = tonumber(ARGV[4])
local ttl = tonumber(ARGV[5])

local tokens = initial
local last = now
local raw = redis.call('GET', KEYS[1])
if raw then
  local sep = string.find(raw, ':', 1, true)
  if sep then
    local stored_tokens = tonumber(string.sub(raw, 1, sep - 1))
    local stored_last = tonumber(string.sub(raw, sep + 1))
    if stored_tokens and stored_last then
      tokens = stored_tokens
      last = stored_last
    end
  end
end

local elapsed = math.max(0, now - last)
tokens = math.min(capacity, tokens + elapsed * rate)
local allowed = 0
if tokens >= 1 then
  tokens = tokens - 1
  allowed = 1
end

redis.call('SET', KEYS[1], string.format('%.6f:%.6f', tokens, math.max(now, last)), 'EX', ttl)
return {allowed, string.format('%.6f', tokens)}
"""

# Pattern scans and bulk deletes serve operators, not the request path
ADMIN_TIMEOUT_SECONDS = 2.0


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisCounterStore(ICounterStore):
    """
    Counter store backed by Redis.

    All service instances share the same Redis, which is the only coordination
    medium of the admission layer.
    """

    def __init__(self, redis_client: Redis, timeout_seconds: float = 0.05) -> None:
        """
        Initialize the Redis counter store.

        Args:
            redis_client: An initialized asynchronous Redis client
            timeout_seconds: Upper bound on any request-path store call
        """
        self._redis = redis_client
        self._timeout = timeout_seconds
        self._increment = redis_client.register_script(INCREMENT_SCRIPT)
        self._decrement_existing = redis_client.register_script(DECREMENT_EXISTING_SCRIPT)
        self._token_bucket = redis_client.register_script(TOKEN_BUCKET_SCRIPT)

    async def _execute(
        self, operation: str, awaitable: Awaitable[T], timeout: float | None = None
    ) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout or self._timeout)
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Redis {operation} failed: {e!r}")
            raise StoreUnavailableError(
                detail=f"{operation}: {e!r}", operation=operation
            ) from e

    async def get(self, key: str) -> str | None:
        return _decode(await self._execute("get", self._redis.get(key)))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        await self._execute("set", self._redis.set(key, value, ex=ttl_seconds))

    async def increment(self, key: str, amount: int = 1, ttl_ms: int | None = None) -> CounterState:
        value, ttl = await self._execute(
            "increment", self._increment(keys=[key], args=[amount, ttl_ms or 0])
        )
        return CounterState(value=int(value), ttl_ms=int(ttl))

    async def decrement_existing(self, key: str, amount: int = 1) -> int | None:
        result = await self._execute(
            "decrement_existing", self._decrement_existing(keys=[key], args=[amount])
        )
        return None if result is None else int(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._execute("delete", self._redis.delete(*keys)))

    async def keys(self, pattern: str) -> list[str]:
        async def _scan() -> list[str]:
            return [_decode(key) async for key in self._redis.scan_iter(match=pattern, count=500)]

        return await self._execute("keys", _scan(), timeout=ADMIN_TIMEOUT_SECONDS)

    async def delete_by_pattern(self, pattern: str) -> int:
        matched = await self.keys(pattern)
        if not matched:
            return 0
        return int(
            await self._execute(
                "delete_by_pattern", self._redis.delete(*matched), timeout=ADMIN_TIMEOUT_SECONDS
            )
        )

    async def ttl(self, key: str) -> int | None:
        remaining = int(await self._execute("ttl", self._redis.ttl(key)))
        # -2: key does not exist, -1: key has no expiry
        return None if remaining == -2 else remaining

    async def set_add(self, set_key: str, member: str) -> bool:
        return bool(await self._execute("set_add", self._redis.sadd(set_key, member)))

    async def set_remove(self, set_key: str, member: str) -> bool:
        return bool(await self._execute("set_remove", self._redis.srem(set_key, member)))

    async def set_is_member(self, set_key: str, member: str) -> bool:
        return bool(await self._execute("set_is_member", self._redis.sismember(set_key, member)))

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
        allowed, tokens = await self._execute(
            "take_token",
            self._token_bucket(
                keys=[key],
                args=[initial_tokens, max_tokens, refill_rate, now, ttl_seconds],
            ),
        )
        return TokenBucketState(allowed=int(allowed) == 1, tokens=float(_decode(tokens)))

    async def ping(self) -> bool:
        return bool(await self._execute("ping", self._redis.ping(), timeout=ADMIN_TIMEOUT_SECONDS))

    async def close(self) -> None:
        try:
            await self._redis.aclose()
            logger.debug("Redis connection closed")
        except RedisError as e:
            logger.error(f"Redis close error: {e!s}")


def create_redis_client(settings: Settings) -> Redis:
    """
    Build the asyncio Redis client used as the shared counter store.

    Args:
        settings: Application settings carrying REDIS_URL and timeouts

    Returns:
        A Redis client that decodes responses to ``str``
    """
    parsed = urllib.parse.urlparse(settings.REDIS_URL)
    timeout = settings.REDIS_SOCKET_TIMEOUT_MS / 1000
    return Redis(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        db=int(parsed.path.lstrip("/")) if parsed.path.lstrip("/") else 0,
        socket_timeout=timeout,
        socket_connect_timeout=max(timeout, 0.5),
        decode_responses=True,
        ssl=settings.REDIS_SSL or parsed.scheme == "rediss",
    )
