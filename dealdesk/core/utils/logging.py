"""
Logging Utility Module.

This module provides logging utilities for the application, including the
filter that keeps caller network addresses and API credentials out of logs.
"""

import logging
import re

_IPV4_PATTERN = re.compile(r"\b(\d{1,3})\.(\d{1,3})\.\d{1,3}\.\d{1,3}\b")
_APIKEY_PATTERN = re.compile(r"(apikey:)([A-Za-z0-9_\-]{4})[A-Za-z0-9_\-]*")


def mask_sensitive(text: str) -> str:
    """
    Mask the host part of IPv4 addresses and the tail of API credential ids.

    ``ip:203.0.113.7`` becomes ``ip:203.0.x.x`` and ``apikey:abcd1234`` becomes
    ``apikey:abcd***``.
    """
    masked = _IPV4_PATTERN.sub(r"\1.\2.x.x", text)
    return _APIKEY_PATTERN.sub(r"\1\2***", masked)


class SensitiveDataFilter(logging.Filter):
    """Custom logging filter to mask caller identifiers in log records."""

    def __init__(self, name: str = "SensitiveDataFilter"):
        super().__init__(name)

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the fully formatted message of the record."""
        original_message = record.getMessage()
        record.msg = mask_sensitive(original_message)
        record.args = ()
        return True
