"""
Rate Limit Key Value Object

A composite identity under which one window counter is kept.
"""

from dataclasses import dataclass

GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class RateLimitKey:
    """
    ``{scope, identifier}`` pair addressing a window counter.

    ``scope`` is ``global``, ``tier:<name>`` or ``endpoint:<path>``;
    ``identifier`` is the resolved caller identifier such as ``user:42``.
    """

    scope: str
    identifier: str

    @classmethod
    def global_scope(cls, identifier: str) -> "RateLimitKey":
        return cls(scope=GLOBAL_SCOPE, identifier=identifier)

    @classmethod
    def for_tier(cls, tier: str, identifier: str) -> "RateLimitKey":
        return cls(scope=f"tier:{tier}", identifier=identifier)

    @classmethod
    def for_endpoint(cls, path: str, identifier: str) -> "RateLimitKey":
        return cls(scope=f"endpoint:{path}", identifier=identifier)

    def __str__(self) -> str:
        return f"{self.scope}:{self.identifier}"
