"""Unit tests for the in-memory counter store."""

import asyncio

import pytest


class TestIncrement:
    @pytest.mark.asyncio
    async def test_creates_counter_with_ttl(self, memory_store):
        state = await memory_store.increment("ratelimit:global:ip:1", 1, ttl_ms=60_000)

        assert state.value == 1
        assert state.ttl_ms == 60_000
        assert await memory_store.ttl("ratelimit:global:ip:1") == 60

    @pytest.mark.asyncio
    async def test_existing_counter_keeps_expiry(self, memory_store, clock):
        await memory_store.increment("c", 1, ttl_ms=60_000)
        clock.advance(20)

        state = await memory_store.increment("c", 1, ttl_ms=60_000)

        assert state.value == 2
        assert state.ttl_ms == 40_000

    @pytest.mark.asyncio
    async def test_counter_expires(self, memory_store, clock):
        await memory_store.increment("c", 5, ttl_ms=1_000)
        clock.advance(1)

        assert await memory_store.get("c") is None
        assert (await memory_store.increment("c", 1, ttl_ms=1_000)).value == 1

    @pytest.mark.asyncio
    async def test_without_ttl_never_expires(self, memory_store):
        state = await memory_store.increment("c")

        assert state.ttl_ms == -1
        assert await memory_store.ttl("c") == -1

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, memory_store):
        await asyncio.gather(*(memory_store.increment("c", 1, ttl_ms=1_000) for _ in range(100)))

        assert await memory_store.get("c") == "100"


class TestDecrementExisting:
    @pytest.mark.asyncio
    async def test_missing_counter_is_not_created(self, memory_store):
        assert await memory_store.decrement_existing("missing") is None
        assert await memory_store.get("missing") is None

    @pytest.mark.asyncio
    async def test_never_goes_below_zero(self, memory_store):
        await memory_store.increment("c", 1, ttl_ms=1_000)

        assert await memory_store.decrement_existing("c", 5) == 0


class TestKeysAndDeletion:
    @pytest.mark.asyncio
    async def test_delete_counts_existing_keys(self, memory_store):
        await memory_store.set("a", "1")

        assert await memory_store.delete("a", "b") == 1
        assert await memory_store.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_by_pattern(self, memory_store):
        await memory_store.set("ratelimit:endpoint:/a:user:1", "1")
        await memory_store.set("ratelimit:endpoint:/b:user:1", "1")
        await memory_store.set("ratelimit:endpoint:/a:user:2", "1")

        deleted = await memory_store.delete_by_pattern("ratelimit:endpoint:*:user:1")

        assert deleted == 2
        assert await memory_store.keys("ratelimit:*") == ["ratelimit:endpoint:/a:user:2"]

    @pytest.mark.asyncio
    async def test_expired_keys_are_not_listed(self, memory_store, clock):
        await memory_store.set("a", "1", ttl_seconds=1)
        clock.advance(2)

        assert await memory_store.keys("*") == []
        assert await memory_store.ttl("a") is None


class TestSets:
    @pytest.mark.asyncio
    async def test_membership(self, memory_store):
        assert await memory_store.set_add("blacklist", "ip:1") is True
        assert await memory_store.set_add("blacklist", "ip:1") is False
        assert await memory_store.set_is_member("blacklist", "ip:1") is True

        assert await memory_store.set_remove("blacklist", "ip:1") is True
        assert await memory_store.set_remove("blacklist", "ip:1") is False
        assert await memory_store.set_is_member("blacklist", "ip:1") is False


class TestTakeToken:
    BUCKET = {"initial_tokens": 2, "max_tokens": 3, "refill_rate": 1.0, "ttl_seconds": 60}

    @pytest.mark.asyncio
    async def test_new_bucket_starts_with_initial_tokens(self, memory_store, clock):
        first = await memory_store.take_token("b", now=clock(), **self.BUCKET)
        second = await memory_store.take_token("b", now=clock(), **self.BUCKET)
        third = await memory_store.take_token("b", now=clock(), **self.BUCKET)

        assert (first.allowed, first.tokens) == (True, 1)
        assert (second.allowed, second.tokens) == (True, 0)
        assert (third.allowed, third.tokens) == (False, 0)

    @pytest.mark.asyncio
    async def test_refill_is_capped(self, memory_store, clock):
        await memory_store.take_token("b", now=clock(), **self.BUCKET)
        clock.advance(100)

        state = await memory_store.take_token("b", now=clock(), **self.BUCKET)

        assert state.allowed is True
        assert state.tokens == 2  # capped at 3, minus the one just taken

    @pytest.mark.asyncio
    async def test_clock_going_backwards_does_not_refill(self, memory_store, clock):
        await memory_store.take_token("b", now=clock(), **self.BUCKET)

        state = await memory_store.take_token("b", now=clock() - 50, **self.BUCKET)

        assert state.tokens == 0
