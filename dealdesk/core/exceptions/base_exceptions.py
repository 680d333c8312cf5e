"""
Base exceptions for the application.

This module defines the foundational exception classes that form the basis of the
application's exception hierarchy.
"""

from typing import Any


class ApplicationError(Exception):
    """
    Base exception for all application exceptions.

    Attributes:
        message: A human-readable error message
        detail: Additional information about the error
        code: An error code for machine processing
    """

    def __init__(
        self,
        message: str,
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.detail = detail
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} - {self.detail}"
        return self.message


class ConfigurationError(ApplicationError):
    """Exception raised for configuration errors."""

    def __init__(
        self,
        message: str = "Configuration error",
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str = "CONFIGURATION_ERROR",
    ) -> None:
        super().__init__(message=message, detail=detail, code=code)


class StoreUnavailableError(ApplicationError):
    """
    Raised when the shared counter store fails to respond or errors.

    Admission stages treat this as a pass (fail-open); administrative
    operations surface it to the operator.
    """

    def __init__(
        self,
        message: str = "Counter store unavailable",
        detail: str | list[str] | dict[str, Any] | None = None,
        code: str = "STORE_UNAVAILABLE",
        operation: str | None = None,
    ) -> None:
        super().__init__(message=message, detail=detail, code=code)
        self.operation = operation
