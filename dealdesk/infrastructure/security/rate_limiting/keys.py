"""
Counter store key layout of the admission layer.

    ratelimit:<scope>:<identifier>   window counters (scope: global, tier:<t>, endpoint:<path>)
    burst:<identifier>               token bucket
    violations:<identifier>          rolling violation count
    blocked:<identifier>             penalty block record (JSON)
    whitelist:<identifier>           whitelist entry (JSON)
    blacklist                        set of permanently denied identifiers
"""

from dealdesk.core.constants import BLACKLIST_SET_KEY, StoreKeyPrefix
from dealdesk.domain.value_objects.rate_limit_key import RateLimitKey

_GLOB_SPECIAL = "*?["


def escape_glob(value: str) -> str:
    """Escape glob metacharacters so ``value`` only matches itself."""
    return "".join(f"[{char}]" if char in _GLOB_SPECIAL else char for char in value)


def window_key(key: RateLimitKey) -> str:
    return f"{StoreKeyPrefix.RATE_LIMIT.value}{key}"


def endpoint_window_pattern(identifier: str) -> str:
    """Pattern matching every endpoint window counter of ``identifier``."""
    return f"{StoreKeyPrefix.RATE_LIMIT.value}endpoint:*:{escape_glob(identifier)}"


def burst_key(identifier: str) -> str:
    return f"{StoreKeyPrefix.BURST.value}{identifier}"


def violations_key(identifier: str) -> str:
    return f"{StoreKeyPrefix.VIOLATIONS.value}{identifier}"


def blocked_key(identifier: str) -> str:
    return f"{StoreKeyPrefix.BLOCKED.value}{identifier}"


def whitelist_key(identifier: str) -> str:
    return f"{StoreKeyPrefix.WHITELIST.value}{identifier}"


def blacklist_set_key() -> str:
    return BLACKLIST_SET_KEY
