"""Unit tests for the fixed window limiter."""

import asyncio

import pytest

from dealdesk.domain.value_objects.rate_limit_key import RateLimitKey
from dealdesk.infrastructure.security.rate_limiting.config import WindowRule
from dealdesk.infrastructure.security.rate_limiting.window_limiter import FixedWindowLimiter

RULE = WindowRule(window_ms=60_000, max=3)
KEY = RateLimitKey.for_tier("free", "user:1")


@pytest.fixture
def limiter(memory_store, clock):
    return FixedWindowLimiter(memory_store, clock)


@pytest.mark.asyncio
async def test_admits_up_to_max_then_rejects(limiter):
    results = [await limiter.hit(KEY, RULE) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.quota.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].retry_after_seconds == 60


@pytest.mark.asyncio
async def test_window_resets_after_expiry(limiter, clock):
    for _ in range(4):
        await limiter.hit(KEY, RULE)
    clock.advance(60)

    result = await limiter.hit(KEY, RULE)

    assert result.allowed is True
    assert result.count == 1


@pytest.mark.asyncio
async def test_counter_ttl_equals_window(limiter, memory_store, clock):
    result = await limiter.hit(KEY, RULE)

    assert result.store_key == "ratelimit:tier:free:user:1"
    assert await memory_store.ttl(result.store_key) == 60
    assert result.quota.reset_at == int(clock()) + 60


@pytest.mark.asyncio
async def test_scopes_are_independent(limiter):
    for _ in range(3):
        await limiter.hit(KEY, RULE)

    other = await limiter.hit(RateLimitKey.global_scope("user:1"), RULE)

    assert other.allowed is True


@pytest.mark.asyncio
async def test_concurrent_hits_never_over_admit(limiter):
    rule = WindowRule(window_ms=60_000, max=10)

    results = await asyncio.gather(*(limiter.hit(KEY, rule) for _ in range(50)))

    assert sum(r.allowed for r in results) == 10


@pytest.mark.asyncio
async def test_refund_gives_back_one_request(limiter, memory_store):
    result = await limiter.hit(KEY, RULE)

    assert await limiter.refund(result.store_key) == 0
    assert await limiter.refund("ratelimit:tier:free:nobody") is None
    assert await memory_store.get("ratelimit:tier:free:nobody") is None
