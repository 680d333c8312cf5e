"""
Core Constants Package

This package contains constants used throughout the application core.
"""

from dealdesk.core.constants.rate_limiting import (
    BLACKLIST_SET_KEY,
    BLOCK_REASON_REPEATED_VIOLATIONS,
    AdmissionErrorCode,
    RateLimitHeader,
    StoreKeyPrefix,
)

__all__ = [
    "BLACKLIST_SET_KEY",
    "BLOCK_REASON_REPEATED_VIOLATIONS",
    "AdmissionErrorCode",
    "RateLimitHeader",
    "StoreKeyPrefix",
]
