"""
Admission Pipeline Interface Definition.

This module defines the contract between the HTTP layer and the request
admission-control layer: one decision per request plus the administrative
operations used by operator tooling.
"""

from abc import ABC, abstractmethod

from dealdesk.domain.entities.access_records import RateLimitStatus, WhitelistEntry
from dealdesk.domain.entities.admission import AdmissionDecision
from dealdesk.domain.entities.caller import CallerContext
from dealdesk.domain.enums import RateLimitTier


class IAdmissionPipeline(ABC):
    """
    Interface for request admission control.

    ``evaluate`` never raises on store failures (fail-open); the
    administrative operations raise ``StoreUnavailableError`` instead.
    """

    @abstractmethod
    def resolve_identifier(self, context: CallerContext) -> str:
        """Return the rate-limit identifier of a caller."""

    @abstractmethod
    def classify(self, context: CallerContext) -> RateLimitTier:
        """Return the quota tier of a caller."""

    @abstractmethod
    async def evaluate(self, context: CallerContext, path: str, method: str = "GET") -> AdmissionDecision:
        """
        Decide whether a request may proceed.

        Args:
            context: Who is calling
            path: Request path, used for endpoint-specific limits
            method: HTTP method

        Returns:
            AdmissionDecision with the admit/reject outcome and quota state
        """

    @abstractmethod
    async def record_outcome(self, decision: AdmissionDecision, status_code: int) -> None:
        """Report the downstream response status of an admitted request."""

    @abstractmethod
    async def whitelist_add(self, identifier: str, duration_seconds: int | None = None) -> WhitelistEntry:
        """Exempt an identifier from every check, permanently when no duration is given."""

    @abstractmethod
    async def whitelist_remove(self, identifier: str) -> bool:
        """Remove a whitelist entry; True when one existed."""

    @abstractmethod
    async def blacklist_add(self, identifier: str) -> bool:
        """Permanently deny an identifier; True when it was not denied yet."""

    @abstractmethod
    async def blacklist_remove(self, identifier: str) -> bool:
        """Lift a permanent denial; True when one existed."""

    @abstractmethod
    async def reset(self, identifier: str) -> int:
        """Clear violations, block and every counter of an identifier; return keys deleted."""

    @abstractmethod
    async def get_status(self, identifier: str) -> RateLimitStatus:
        """Report what the admission layer currently holds about an identifier."""
