"""
Caller Identity Module

The authentication layer hands the admission layer one of three caller shapes.
They form a closed union: every consumer handles all three explicitly instead
of probing optional attributes on a partially populated object.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Anonymous:
    """A caller without user session or API credential."""


@dataclass(frozen=True)
class AuthenticatedUser:
    """
    A caller with a user session.

    Role, account type and subscription plan are passed through unparsed; the
    tier classifier decides how to treat unknown values.
    """

    user_id: str
    role: str | None = None
    account_type: str | None = None
    subscription_plan: str | None = None


@dataclass(frozen=True)
class ApiCredential:
    """A caller authenticated by an API credential."""

    credential_id: str


CallerIdentity = Anonymous | AuthenticatedUser | ApiCredential


@dataclass(frozen=True)
class CallerContext:
    """
    Everything the admission layer knows about who is calling.

    Attributes:
        identity: Who the caller is
        network_address: Remote address of the request, when known
        override_key: Explicit rate-limit identity supplied by the caller's
            integration; wins over every other identifier
    """

    identity: CallerIdentity = Anonymous()
    network_address: str | None = None
    override_key: str | None = None
