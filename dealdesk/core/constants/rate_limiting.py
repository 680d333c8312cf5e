"""
Rate Limiting Constants Module

This module defines the stable error codes, response headers and store key
prefixes used by the request admission-control layer.
"""

from enum import Enum, IntEnum


class AdmissionErrorCode(IntEnum):
    """
    Numeric error codes surfaced in rejection bodies.

    Clients key on these values, so they must never be renumbered.
    """

    ACCESS_BLOCKED = 4001  # Permission denied: active block or blacklist entry
    RATE_LIMIT_EXCEEDED = 9004  # Window or burst quota exhausted


class RateLimitHeader(str, Enum):
    """HTTP headers communicating quota state to clients."""

    LIMIT = "X-RateLimit-Limit"
    REMAINING = "X-RateLimit-Remaining"
    RESET = "X-RateLimit-Reset"
    RETRY_AFTER = "Retry-After"
    BURST_REMAINING = "X-Burst-Tokens-Remaining"


class StoreKeyPrefix(str, Enum):
    """Prefixes of every record the admission layer keeps in the counter store."""

    RATE_LIMIT = "ratelimit:"
    VIOLATIONS = "violations:"
    BLOCKED = "blocked:"
    WHITELIST = "whitelist:"
    BURST = "burst:"


BLACKLIST_SET_KEY = "blacklist"

BLOCK_REASON_REPEATED_VIOLATIONS = "Repeated rate limit violations"
