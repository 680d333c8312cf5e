"""
Domain Entities Package.
"""

from dealdesk.domain.entities.access_records import (
    ActiveLimit,
    BlockRecord,
    RateLimitStatus,
    WhitelistEntry,
)
from dealdesk.domain.entities.admission import (
    AdmissionDecision,
    AdmissionStage,
    QuotaSnapshot,
    Rejection,
    RejectionKind,
)
from dealdesk.domain.entities.caller import (
    Anonymous,
    ApiCredential,
    AuthenticatedUser,
    CallerContext,
    CallerIdentity,
)

__all__ = [
    "ActiveLimit",
    "AdmissionDecision",
    "AdmissionStage",
    "Anonymous",
    "ApiCredential",
    "AuthenticatedUser",
    "BlockRecord",
    "CallerContext",
    "CallerIdentity",
    "QuotaSnapshot",
    "RateLimitStatus",
    "Rejection",
    "RejectionKind",
    "WhitelistEntry",
]
