"""
Key Resolver and Tier Classifier.

Pure functions of the caller context: no store access, no side effects.
"""

import logging

from dealdesk.domain.entities.caller import (
    Anonymous,
    ApiCredential,
    AuthenticatedUser,
    CallerContext,
    CallerIdentity,
)
from dealdesk.domain.enums import AccountType, RateLimitTier, SubscriptionPlan, UserRole

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown"

_ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})
_PAID_CREATOR_PLANS = frozenset(
    {SubscriptionPlan.CREATOR, SubscriptionPlan.AGENCY, SubscriptionPlan.ENTERPRISE}
)


class KeyResolver:
    """Derives the stable rate-limit identifier of a caller."""

    def resolve(self, context: CallerContext) -> str:
        """
        Pick the identifier by priority: override, user, API credential, address.

        Args:
            context: Caller context supplied by the authentication layer

        Returns:
            Identifier such as ``user:42``, ``apikey:k_1`` or ``ip:10.0.0.1``
        """
        if context.override_key:
            return context.override_key

        identity = context.identity
        if isinstance(identity, AuthenticatedUser):
            return f"user:{identity.user_id}"
        if isinstance(identity, ApiCredential):
            return f"apikey:{identity.credential_id}"
        if isinstance(identity, Anonymous):
            return f"ip:{context.network_address or UNKNOWN_ADDRESS}"
        raise TypeError(f"Unsupported caller identity: {type(identity).__name__}")


class TierClassifier:
    """
    Maps caller metadata to a quota tier.

    Missing or malformed metadata falls back to ``fallback_tier``, which the
    pipeline sets to the tier with the lowest quota.
    """

    def __init__(self, fallback_tier: RateLimitTier = RateLimitTier.ANONYMOUS):
        self.fallback_tier = fallback_tier

    def classify(self, identity: CallerIdentity) -> RateLimitTier:
        if isinstance(identity, Anonymous):
            return RateLimitTier.ANONYMOUS
        if isinstance(identity, ApiCredential):
            return RateLimitTier.API
        if isinstance(identity, AuthenticatedUser):
            return self._classify_user(identity)
        raise TypeError(f"Unsupported caller identity: {type(identity).__name__}")

    def _classify_user(self, user: AuthenticatedUser) -> RateLimitTier:
        try:
            role = UserRole(user.role) if user.role else None
            account_type = AccountType(user.account_type) if user.account_type else None
            plan = SubscriptionPlan(user.subscription_plan) if user.subscription_plan else None
        except ValueError:
            logger.warning(
                f"Malformed caller metadata for user {user.user_id}, "
                f"using {self.fallback_tier.value} tier"
            )
            return self.fallback_tier

        if role is None and account_type is None:
            return self.fallback_tier

        if role in _ADMIN_ROLES:
            return RateLimitTier.ADMIN
        if account_type is AccountType.ENTERPRISE or plan is SubscriptionPlan.ENTERPRISE:
            return RateLimitTier.ENTERPRISE
        if account_type is AccountType.AGENCY or role is UserRole.AGENCY:
            return RateLimitTier.AGENCY
        if role is UserRole.CREATOR and plan in _PAID_CREATOR_PLANS:
            return RateLimitTier.CREATOR
        return RateLimitTier.FREE
