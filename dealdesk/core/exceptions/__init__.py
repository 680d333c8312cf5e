"""
Core exceptions package.

This package contains all exceptions used throughout the application.
"""

from dealdesk.core.exceptions.base_exceptions import (
    ApplicationError,
    ConfigurationError,
    StoreUnavailableError,
)

__all__ = [
    "ApplicationError",
    "ConfigurationError",
    "StoreUnavailableError",
]
