"""
Counter store implementations.
"""

from dealdesk.infrastructure.cache.in_memory_counter_store import InMemoryCounterStore
from dealdesk.infrastructure.cache.redis_counter_store import (
    RedisCounterStore,
    create_redis_client,
)

__all__ = ["InMemoryCounterStore", "RedisCounterStore", "create_redis_client"]
