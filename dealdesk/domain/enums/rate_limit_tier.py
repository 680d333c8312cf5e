"""
Rate Limit Tier Enumeration

Named quota classes a caller is sorted into before tier-based limiting.
"""

import enum


class RateLimitTier(str, enum.Enum):
    """Quota tiers, from the most to the least restrictive by default."""

    ANONYMOUS = "anonymous"
    FREE = "free"
    API = "api"
    CREATOR = "creator"
    AGENCY = "agency"
    ENTERPRISE = "enterprise"
    ADMIN = "admin"
