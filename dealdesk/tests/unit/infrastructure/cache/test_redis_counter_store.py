"""Unit tests for the Redis counter store, with the redis client mocked."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from dealdesk.core.exceptions import StoreUnavailableError
from dealdesk.infrastructure.cache.redis_counter_store import (
    DECREMENT_EXISTING_SCRIPT,
    INCREMENT_SCRIPT,
    TOKEN_BUCKET_SCRIPT,
    RedisCounterStore,
    create_redis_client,
)


async def _scan(*keys):
    for key in keys:
        yield key


@pytest.fixture
def scripts():
    return {}


@pytest.fixture
def redis_client(scripts):
    client = MagicMock()

    def register_script(source):
        script = AsyncMock()
        scripts[source] = script
        return script

    client.register_script.side_effect = register_script
    return client


@pytest.fixture
def store(redis_client):
    return RedisCounterStore(redis_client, timeout_seconds=0.05)


class TestScripts:
    def test_registers_atomic_scripts(self, store, scripts):
        assert set(scripts) == {INCREMENT_SCRIPT, DECREMENT_EXISTING_SCRIPT, TOKEN_BUCKET_SCRIPT}

    @pytest.mark.asyncio
    async def test_increment_passes_ttl_to_script(self, store, scripts):
        scripts[INCREMENT_SCRIPT].return_value = [3, 899_000]

        state = await store.increment("ratelimit:global:ip:1", 1, ttl_ms=900_000)

        scripts[INCREMENT_SCRIPT].assert_awaited_once_with(keys=["ratelimit:global:ip:1"], args=[1, 900_000])
        assert state.value == 3
        assert state.ttl_ms == 899_000

    @pytest.mark.asyncio
    async def test_increment_without_ttl(self, store, scripts):
        scripts[INCREMENT_SCRIPT].return_value = [1, -1]

        await store.increment("c")

        scripts[INCREMENT_SCRIPT].assert_awaited_once_with(keys=["c"], args=[1, 0])

    @pytest.mark.asyncio
    async def test_decrement_existing_missing_counter(self, store, scripts):
        scripts[DECREMENT_EXISTING_SCRIPT].return_value = None

        assert await store.decrement_existing("c") is None

    @pytest.mark.asyncio
    async def test_take_token(self, store, scripts):
        scripts[TOKEN_BUCKET_SCRIPT].return_value = [1, "9.000000"]

        state = await store.take_token(
            "burst:ip:1",
            initial_tokens=10,
            max_tokens=20,
            refill_rate=1.0,
            now=1_700_000_000.5,
            ttl_seconds=60,
        )

        scripts[TOKEN_BUCKET_SCRIPT].assert_awaited_once_with(
            keys=["burst:ip:1"], args=[10, 20, 1.0, 1_700_000_000.5, 60]
        )
        assert state.allowed is True
        assert state.tokens == 9.0

    @pytest.mark.asyncio
    async def test_take_token_rejected(self, store, scripts):
        scripts[TOKEN_BUCKET_SCRIPT].return_value = [0, b"0.250000"]

        state = await store.take_token(
            "burst:ip:1", initial_tokens=10, max_tokens=20, refill_rate=1.0, now=0.0, ttl_seconds=60
        )

        assert state.allowed is False
        assert state.tokens == 0.25


class TestCommands:
    @pytest.mark.asyncio
    async def test_ttl_maps_missing_key_to_none(self, store, redis_client):
        redis_client.ttl = AsyncMock(return_value=-2)
        assert await store.ttl("missing") is None

        redis_client.ttl = AsyncMock(return_value=-1)
        assert await store.ttl("persistent") == -1

    @pytest.mark.asyncio
    async def test_delete_without_keys_skips_redis(self, store, redis_client):
        redis_client.delete = AsyncMock()

        assert await store.delete() == 0
        redis_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_by_pattern_scans_then_deletes(self, store, redis_client):
        redis_client.scan_iter = MagicMock(return_value=_scan("ratelimit:endpoint:/a:ip:1", "ratelimit:endpoint:/b:ip:1"))
        redis_client.delete = AsyncMock(return_value=2)

        deleted = await store.delete_by_pattern("ratelimit:endpoint:*:ip:1")

        assert deleted == 2
        redis_client.scan_iter.assert_called_once_with(match="ratelimit:endpoint:*:ip:1", count=500)
        redis_client.delete.assert_awaited_once_with("ratelimit:endpoint:/a:ip:1", "ratelimit:endpoint:/b:ip:1")

    @pytest.mark.asyncio
    async def test_set_membership(self, store, redis_client):
        redis_client.sadd = AsyncMock(return_value=1)
        redis_client.sismember = AsyncMock(return_value=0)

        assert await store.set_add("blacklist", "ip:1") is True
        assert await store.set_is_member("blacklist", "ip:2") is False

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, store, redis_client):
        redis_client.set = AsyncMock(return_value=True)

        await store.set("blocked:ip:1", "{}", ttl_seconds=86400)

        redis_client.set.assert_awaited_once_with("blocked:ip:1", "{}", ex=86400)


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisError("boom"), RedisConnectionError("refused"), OSError("network down")],
    )
    async def test_driver_errors_become_store_unavailable(self, store, redis_client, error):
        redis_client.get = AsyncMock(side_effect=error)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get("c")

        assert exc_info.value.operation == "get"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self, redis_client):
        async def never_answers(*args, **kwargs):
            await asyncio.sleep(1)

        redis_client.get = never_answers
        store = RedisCounterStore(redis_client, timeout_seconds=0.01)

        with pytest.raises(StoreUnavailableError):
            await store.get("c")

    @pytest.mark.asyncio
    async def test_script_errors_become_store_unavailable(self, store, scripts):
        scripts[TOKEN_BUCKET_SCRIPT].side_effect = RedisError("NOSCRIPT")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.take_token("b", initial_tokens=1, max_tokens=1, refill_rate=1, now=0, ttl_seconds=60)

        assert exc_info.value.operation == "take_token"


class TestCreateRedisClient:
    def test_parses_url(self, make_settings):
        settings = make_settings(REDIS_URL="redis://:secret@cache.internal:6380/2", REDIS_SOCKET_TIMEOUT_MS=40)

        client = create_redis_client(settings)

        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert kwargs["password"] == "secret"
        assert kwargs["socket_timeout"] == 0.04
