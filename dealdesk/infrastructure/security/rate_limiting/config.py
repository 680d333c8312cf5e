"""
Admission Configuration Module.

Immutable configuration of the admission pipeline. It is built once at
process start from ``Settings`` and shared by every stage; invalid
combinations are rejected before the first request is served.
"""

import math
from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from dealdesk.core.config.settings import Settings
from dealdesk.core.exceptions import ConfigurationError
from dealdesk.domain.enums import RateLimitTier

WILDCARD = "*"


class WindowRule(BaseModel):
    """A fixed-window quota: at most ``max_requests`` per ``window_ms``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    window_ms: int = Field(..., gt=0)
    max_requests: int = Field(..., gt=0, alias="max")

    @property
    def window_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)


class EndpointRule(WindowRule):
    """
    Window rule applied to one sensitive path.

    A pattern ending in ``*`` matches every path starting with the rest of
    the pattern; any other pattern must match the path exactly.
    """

    pattern: str = Field(..., min_length=1)
    skip_successful: bool = False

    @property
    def is_prefix(self) -> bool:
        return self.pattern.endswith(WILDCARD)

    def matches(self, path: str) -> bool:
        if self.is_prefix:
            return path.startswith(self.pattern[: -len(WILDCARD)])
        return path == self.pattern


class BurstConfig(BaseModel):
    """Token bucket parameters."""

    model_config = ConfigDict(frozen=True)

    initial_tokens: float = Field(default=10, ge=0)
    max_tokens: float = Field(default=20, gt=0)
    refill_rate: float = Field(default=1.0, gt=0)  # Tokens per second

    @model_validator(mode="after")
    def check_capacity(self) -> Self:
        if self.initial_tokens > self.max_tokens:
            raise ConfigurationError(
                "Invalid burst configuration",
                detail=f"initial_tokens ({self.initial_tokens}) exceeds max_tokens ({self.max_tokens})",
            )
        return self

    @property
    def idle_ttl_seconds(self) -> int:
        """Lifetime of an idle bucket: at least the time to refill from empty."""
        return max(60, math.ceil(self.max_tokens / self.refill_rate))


class EscalationPolicy(BaseModel):
    """
    Monotonic staircase of violation thresholds.

    Each threshold carries a penalty multiplier; reaching the last threshold
    turns into a block of ``block_duration_seconds``.
    """

    model_config = ConfigDict(frozen=True)

    thresholds: tuple[int, ...] = (5, 10, 20)
    multipliers: tuple[float, ...] = (2, 4, 8)
    block_duration_seconds: int = Field(default=86400, gt=0)
    violation_window_seconds: int = Field(default=86400, gt=0)

    @model_validator(mode="after")
    def check_staircase(self) -> Self:
        if not self.thresholds:
            raise ConfigurationError("Invalid escalation policy", detail="at least one threshold is required")
        if len(self.thresholds) != len(self.multipliers):
            raise ConfigurationError(
                "Invalid escalation policy",
                detail=f"{len(self.thresholds)} thresholds but {len(self.multipliers)} multipliers",
            )
        if any(t <= 0 for t in self.thresholds):
            raise ConfigurationError("Invalid escalation policy", detail="thresholds must be positive")
        if any(b <= a for a, b in zip(self.thresholds, self.thresholds[1:])):
            raise ConfigurationError("Invalid escalation policy", detail="thresholds must be strictly ascending")
        if any(m < 1 for m in self.multipliers):
            raise ConfigurationError("Invalid escalation policy", detail="multipliers must be at least 1")
        return self

    @property
    def block_threshold(self) -> int:
        return self.thresholds[-1]

    def level_for(self, violations: int) -> int:
        """Number of thresholds reached by ``violations`` (0 = no penalty)."""
        return sum(1 for threshold in self.thresholds if violations >= threshold)

    def multiplier_for(self, violations: int) -> float:
        level = self.level_for(violations)
        return 1.0 if level == 0 else self.multipliers[level - 1]

    def should_block(self, violations: int) -> bool:
        return violations >= self.block_threshold


class AdmissionConfig(BaseModel):
    """Complete, immutable configuration of the admission pipeline."""

    model_config = ConfigDict(frozen=True)

    global_rule: WindowRule
    tier_quotas: Mapping[RateLimitTier, int]
    endpoint_rules: tuple[EndpointRule, ...] = ()
    burst: BurstConfig = Field(default_factory=BurstConfig)
    escalation: EscalationPolicy = Field(default_factory=EscalationPolicy)

    @model_validator(mode="after")
    def check_tiers(self) -> Self:
        missing = [tier.value for tier in RateLimitTier if tier not in self.tier_quotas]
        if missing:
            raise ConfigurationError("Invalid tier quotas", detail=f"missing quota for tiers: {missing}")
        if any(quota <= 0 for quota in self.tier_quotas.values()):
            raise ConfigurationError("Invalid tier quotas", detail="tier quotas must be positive")
        return self

    def tier_rule(self, tier: RateLimitTier) -> WindowRule:
        """Tier quotas share the length of the global window."""
        return WindowRule(window_ms=self.global_rule.window_ms, max=self.tier_quotas[tier])

    @property
    def most_restrictive_tier(self) -> RateLimitTier:
        return min(self.tier_quotas, key=lambda tier: self.tier_quotas[tier])

    def endpoint_rule_for(self, path: str) -> EndpointRule | None:
        """
        Find the rule governing ``path``.

        Exact patterns win over wildcard patterns; among wildcard patterns the
        longest matching prefix wins.
        """
        prefix_match: EndpointRule | None = None
        for rule in self.endpoint_rules:
            if not rule.matches(path):
                continue
            if not rule.is_prefix:
                return rule
            if prefix_match is None or len(rule.pattern) > len(prefix_match.pattern):
                prefix_match = rule
        return prefix_match

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdmissionConfig":
        """
        Build the admission configuration from application settings.

        Args:
            settings: Application settings

        Returns:
            Validated AdmissionConfig

        Raises:
            ConfigurationError: If the settings describe an invalid configuration
        """
        try:
            return cls(
                global_rule=WindowRule(
                    window_ms=settings.RATE_LIMIT_GLOBAL_WINDOW_MS,
                    max=settings.RATE_LIMIT_GLOBAL_MAX,
                ),
                tier_quotas=_parse_tier_quotas(settings.RATE_LIMIT_TIER_QUOTAS),
                endpoint_rules=tuple(
                    _parse_endpoint_rule(pattern, options)
                    for pattern, options in settings.RATE_LIMIT_ENDPOINTS.items()
                ),
                burst=BurstConfig(
                    initial_tokens=settings.RATE_LIMIT_BURST_INITIAL_TOKENS,
                    max_tokens=settings.RATE_LIMIT_BURST_MAX_TOKENS,
                    refill_rate=settings.RATE_LIMIT_BURST_REFILL_RATE,
                ),
                escalation=EscalationPolicy(
                    thresholds=tuple(settings.RATE_LIMIT_ESCALATION_THRESHOLDS),
                    multipliers=tuple(settings.RATE_LIMIT_ESCALATION_MULTIPLIERS),
                    block_duration_seconds=settings.RATE_LIMIT_BLOCK_DURATION_SECONDS,
                    violation_window_seconds=settings.RATE_LIMIT_VIOLATION_WINDOW_SECONDS,
                ),
            )
        except ValidationError as e:
            raise ConfigurationError("Invalid rate limiting configuration", detail=str(e)) from e


def _parse_tier_quotas(raw: Mapping[str, int]) -> dict[RateLimitTier, int]:
    quotas: dict[RateLimitTier, int] = {}
    for name, quota in raw.items():
        try:
            quotas[RateLimitTier(name.lower())] = int(quota)
        except ValueError as e:
            raise ConfigurationError("Invalid tier quotas", detail=f"unknown tier {name!r}") from e
    return quotas


def _parse_endpoint_rule(pattern: str, options: Mapping[str, Any]) -> EndpointRule:
    return EndpointRule(
        pattern=pattern,
        window_ms=options.get("window_ms"),
        max=options.get("max"),
        skip_successful=bool(options.get("skip_successful", False)),
    )
