"""
Access Record Entities

Records persisted in the counter store by the block/whitelist registry, and
the status view assembled for operators.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BlockRecord(BaseModel):
    """A timed block placed on a repeat offender."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Blocked caller identifier")
    reason: str = Field(..., description="Why the caller was blocked")
    violations: int = Field(default=0, ge=0, description="Violation count at block time")
    blocked_at: datetime
    expires_at: datetime


class WhitelistEntry(BaseModel):
    """An administrative exemption from every admission check."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    added_at: datetime
    expires_at: datetime | None = None
    permanent: bool = False


class ActiveLimit(BaseModel):
    """One live window counter of a caller."""

    key: str
    count: int
    ttl_seconds: int | None = None
    resets_at: datetime | None = None


class RateLimitStatus(BaseModel):
    """Everything the admission layer currently holds about one identifier."""

    identifier: str
    blocked: bool = False
    blacklisted: bool = False
    whitelisted: bool = False
    violations: int = 0
    block: BlockRecord | None = None
    whitelist: WhitelistEntry | None = None
    burst_tokens: float | None = None
    active_limits: list[ActiveLimit] = Field(default_factory=list)
