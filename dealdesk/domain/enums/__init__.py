from dealdesk.domain.enums.account import AccountType, SubscriptionPlan, UserRole
from dealdesk.domain.enums.rate_limit_tier import RateLimitTier

__all__ = ["AccountType", "RateLimitTier", "SubscriptionPlan", "UserRole"]
