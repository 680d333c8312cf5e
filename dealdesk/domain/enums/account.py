"""
Account Enumerations Module

Roles, account types and subscription plans carried by authenticated callers.
"""

import enum


class UserRole(str, enum.Enum):
    """User roles within the system."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    AGENCY = "agency"
    CREATOR = "creator"
    MANAGER = "manager"
    VIEWER = "viewer"


class AccountType(str, enum.Enum):
    """Kind of account a user belongs to."""

    INDIVIDUAL = "individual"
    AGENCY = "agency"
    ENTERPRISE = "enterprise"


class SubscriptionPlan(str, enum.Enum):
    """Billing plan of an account."""

    FREE = "free"
    CREATOR = "creator"
    AGENCY = "agency"
    ENTERPRISE = "enterprise"
