"""
Violation Tracker and Progressive Escalation.

Every rejection from a window or burst check increments a rolling violation
counter for the offending identifier. The count is mapped onto the escalation
staircase: intermediate thresholds multiply the retry hint, and reaching the
last threshold writes a timed block.
"""

import logging
from dataclasses import dataclass

from dealdesk.core.constants import BLOCK_REASON_REPEATED_VIOLATIONS
from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.domain.entities.access_records import BlockRecord
from dealdesk.infrastructure.security.rate_limiting.access_registry import AccessRegistry
from dealdesk.infrastructure.security.rate_limiting.config import EscalationPolicy
from dealdesk.infrastructure.security.rate_limiting.keys import violations_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Escalation:
    """Penalty in force after a violation was recorded."""

    violations: int
    level: int
    multiplier: float
    block: BlockRecord | None = None

    @property
    def blocked(self) -> bool:
        return self.block is not None


class ViolationTracker:
    """Records breaches and promotes repeat offenders to a block."""

    def __init__(self, store: ICounterStore, registry: AccessRegistry, policy: EscalationPolicy):
        self._store = store
        self._registry = registry
        self._policy = policy

    async def record(self, identifier: str) -> Escalation:
        """
        Count one violation and apply the escalation policy.

        Args:
            identifier: Offending caller identifier

        Returns:
            Escalation describing the penalty now in force

        Raises:
            StoreUnavailableError: If the counter store fails
        """
        state = await self._store.increment(
            violations_key(identifier), 1, ttl_ms=self._policy.violation_window_seconds * 1000
        )
        violations = state.value
        level = self._policy.level_for(violations)
        logger.info(f"Rate limit violation #{violations} for {identifier} (level {level})")

        block = None
        if self._policy.should_block(violations):
            block = await self._registry.block(
                identifier,
                reason=BLOCK_REASON_REPEATED_VIOLATIONS,
                violations=violations,
                duration_seconds=self._policy.block_duration_seconds,
            )

        return Escalation(
            violations=violations,
            level=level,
            multiplier=self._policy.multiplier_for(violations),
            block=block,
        )

    async def count(self, identifier: str) -> int:
        raw = await self._store.get(violations_key(identifier))
        return int(raw) if raw is not None else 0
