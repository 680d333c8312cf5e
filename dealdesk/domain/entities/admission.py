"""
Admission Decision Module

Value objects produced by the admission pipeline for every inbound request.
Stages return these explicitly; nothing is written onto the request object.
"""

import enum
from dataclasses import dataclass, field

from dealdesk.core.constants import AdmissionErrorCode
from dealdesk.domain.enums import RateLimitTier


class RejectionKind(str, enum.Enum):
    """User-facing rejection classes."""

    QUOTA_EXCEEDED = "quota_exceeded"
    BLOCKED = "blocked"


class AdmissionStage(str, enum.Enum):
    """Stages of the admission pipeline, in evaluation order."""

    WHITELIST = "whitelist"
    BLOCKLIST = "blocklist"
    ENDPOINT = "endpoint"
    TIER = "tier"
    GLOBAL = "global"
    BURST = "burst"


@dataclass(frozen=True)
class Rejection:
    """Structured reason attached to a rejected request."""

    kind: RejectionKind
    http_status: int
    error_code: AdmissionErrorCode
    message: str
    stage: AdmissionStage
    retry_after_seconds: int | None = None

    @classmethod
    def quota_exceeded(
        cls, stage: AdmissionStage, message: str, retry_after_seconds: int
    ) -> "Rejection":
        return cls(
            kind=RejectionKind.QUOTA_EXCEEDED,
            http_status=429,
            error_code=AdmissionErrorCode.RATE_LIMIT_EXCEEDED,
            message=message,
            stage=stage,
            retry_after_seconds=retry_after_seconds,
        )

    @classmethod
    def blocked(cls, stage: AdmissionStage, message: str) -> "Rejection":
        # No retry hint: the remaining block duration is withheld on purpose
        return cls(
            kind=RejectionKind.BLOCKED,
            http_status=403,
            error_code=AdmissionErrorCode.ACCESS_BLOCKED,
            message=message,
            stage=stage,
        )


@dataclass(frozen=True)
class QuotaSnapshot:
    """Quota state of one window counter after the current request."""

    limit: int
    remaining: int
    reset_at: int  # Epoch seconds at which the window expires


@dataclass(frozen=True)
class AdmissionDecision:
    """
    Outcome of running a request through the admission pipeline.

    Attributes:
        admitted: Whether the request may proceed
        identifier: Resolved caller identifier (``user:42``, ``ip:10.0.0.1``...)
        tier: Quota tier the caller was classified into
        rejection: Reason when ``admitted`` is False
        quota: Tightest window evaluated, for response headers
        burst_tokens_remaining: Whole tokens left in the caller's burst bucket
        bypassed: True when a whitelist entry skipped every check
        refund_keys: Counter keys to refund when the request succeeds
    """

    admitted: bool
    identifier: str
    tier: RateLimitTier
    rejection: Rejection | None = None
    quota: QuotaSnapshot | None = None
    burst_tokens_remaining: int | None = None
    bypassed: bool = False
    refund_keys: tuple[str, ...] = field(default_factory=tuple)
