"""
Rate limit administration schemas.

Request and response models of the rate limit admin endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from dealdesk.domain.entities.access_records import RateLimitStatus


class WhitelistAddRequest(BaseModel):
    """Request to exempt an identifier from admission control."""

    identifier: str = Field(..., min_length=1, description="Caller identifier, e.g. user:42 or ip:10.0.0.1")
    duration_seconds: int | None = Field(
        default=None, gt=0, description="Lifetime of the entry; omit for a permanent entry"
    )


class BlacklistAddRequest(BaseModel):
    """Request to permanently deny an identifier."""

    identifier: str = Field(..., min_length=1)


class WhitelistEntryResponse(BaseModel):
    identifier: str
    added_at: datetime
    expires_at: datetime | None = None
    permanent: bool


class ListChangeResponse(BaseModel):
    """Outcome of adding or removing an identifier from an override list."""

    identifier: str
    changed: bool = Field(..., description="False when the list already was in the requested state")


class ResetResponse(BaseModel):
    identifier: str
    keys_cleared: int


class RateLimitStatusResponse(RateLimitStatus):
    """Rate limit status of one identifier."""
