"""
Admission Pipeline.

Runs every inbound request through a fixed, statically composed list of
stages and returns an explicit decision:

    1. whitelist    admit immediately, skipping everything below
    2. blocklist    administrative blacklist or penalty block: reject (403)
    3. endpoint     window limit of a configured sensitive path
    4. tier         window limit of the caller's tier
    5. global       global window ceiling
    6. burst        token bucket, last gate before admission

The first rejection short-circuits the remaining stages, records a violation
and applies escalation. Any store failure inside a stage is logged and the
stage passes: the pipeline fails open uniformly.
"""

import logging
import math
import time
from collections.abc import Callable
from datetime import UTC, datetime

from dealdesk.core.exceptions import StoreUnavailableError
from dealdesk.core.interfaces.services.admission_pipeline_interface import IAdmissionPipeline
from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.domain.entities.access_records import ActiveLimit, RateLimitStatus, WhitelistEntry
from dealdesk.domain.entities.admission import (
    AdmissionDecision,
    AdmissionStage,
    QuotaSnapshot,
    Rejection,
)
from dealdesk.domain.entities.caller import CallerContext
from dealdesk.domain.enums import RateLimitTier
from dealdesk.domain.value_objects.rate_limit_key import RateLimitKey
from dealdesk.infrastructure.security.rate_limiting.access_registry import AccessRegistry
from dealdesk.infrastructure.security.rate_limiting.burst_limiter import (
    BURST_RETRY_AFTER_SECONDS,
    TokenBucketLimiter,
)
from dealdesk.infrastructure.security.rate_limiting.config import (
    AdmissionConfig,
    EndpointRule,
    WindowRule,
)
from dealdesk.infrastructure.security.rate_limiting.key_resolver import KeyResolver, TierClassifier
from dealdesk.infrastructure.security.rate_limiting.keys import (
    blocked_key,
    burst_key,
    endpoint_window_pattern,
    violations_key,
    window_key,
)
from dealdesk.infrastructure.security.rate_limiting.violation_tracker import ViolationTracker
from dealdesk.infrastructure.security.rate_limiting.window_limiter import FixedWindowLimiter

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "Access blocked due to repeated violations. Please contact support."
GLOBAL_LIMIT_MESSAGE = "Too many requests, please try again later"
ENDPOINT_LIMIT_MESSAGE = "Too many requests to this endpoint, please try again later"
BURST_LIMIT_MESSAGE = "Request rate too high, please slow down"


class AdmissionPipeline(IAdmissionPipeline):
    """
    Request admission control over a shared counter store.

    Constructed once per process with immutable configuration and passed to
    the HTTP layer; holds no per-request state.
    """

    def __init__(
        self,
        store: ICounterStore,
        config: AdmissionConfig,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the pipeline and its stages.

        Args:
            store: Shared counter store
            config: Validated admission configuration
            clock: Source of the current epoch time in seconds
        """
        self._store = store
        self._config = config
        self._clock = clock
        self._resolver = KeyResolver()
        self._classifier = TierClassifier(fallback_tier=config.most_restrictive_tier)
        self._windows = FixedWindowLimiter(store, clock)
        self._burst = TokenBucketLimiter(store, config.burst, clock)
        self._registry = AccessRegistry(store, clock)
        self._violations = ViolationTracker(store, self._registry, config.escalation)

    @property
    def config(self) -> AdmissionConfig:
        return self._config

    def resolve_identifier(self, context: CallerContext) -> str:
        return self._resolver.resolve(context)

    def classify(self, context: CallerContext) -> RateLimitTier:
        return self._classifier.classify(context.identity)

    async def evaluate(self, context: CallerContext, path: str, method: str = "GET") -> AdmissionDecision:
        identifier = self._resolver.resolve(context)
        tier = self._classifier.classify(context.identity)

        if await self._check_whitelist(identifier):
            logger.debug(f"Whitelisted caller {identifier} bypassed admission for {method} {path}")
            return AdmissionDecision(admitted=True, identifier=identifier, tier=tier, bypassed=True)

        if await self._check_blocklist(identifier):
            logger.warning(f"Rejected blocked caller {identifier} on {method} {path}")
            return AdmissionDecision(
                admitted=False,
                identifier=identifier,
                tier=tier,
                rejection=Rejection.blocked(AdmissionStage.BLOCKLIST, BLOCKED_MESSAGE),
            )

        quota: QuotaSnapshot | None = None
        refund_keys: list[str] = []
        for stage, key, rule, message in self._window_checks(identifier, tier, path):
            try:
                result = await self._windows.hit(key, rule)
            except StoreUnavailableError as e:
                self._log_fail_open(stage, identifier, e)
                continue

            if quota is None or result.quota.remaining < quota.remaining:
                quota = result.quota
            if isinstance(rule, EndpointRule) and rule.skip_successful:
                refund_keys.append(result.store_key)

            if not result.allowed:
                logger.warning(
                    f"Rate limit exceeded for {identifier} on {method} {path} "
                    f"({stage.value}: {result.count}/{rule.max_requests})"
                )
                rejection = await self._reject(identifier, stage, message, result.retry_after_seconds)
                return AdmissionDecision(
                    admitted=False, identifier=identifier, tier=tier, rejection=rejection, quota=quota
                )

        burst_tokens: int | None = None
        try:
            burst = await self._burst.consume(identifier)
        except StoreUnavailableError as e:
            self._log_fail_open(AdmissionStage.BURST, identifier, e)
        else:
            burst_tokens = burst.whole_tokens
            if not burst.allowed:
                logger.warning(f"Burst limit exceeded for {identifier} on {method} {path}")
                rejection = await self._reject(
                    identifier, AdmissionStage.BURST, BURST_LIMIT_MESSAGE, BURST_RETRY_AFTER_SECONDS
                )
                return AdmissionDecision(
                    admitted=False,
                    identifier=identifier,
                    tier=tier,
                    rejection=rejection,
                    quota=quota,
                    burst_tokens_remaining=burst_tokens,
                )

        return AdmissionDecision(
            admitted=True,
            identifier=identifier,
            tier=tier,
            quota=quota,
            burst_tokens_remaining=burst_tokens,
            refund_keys=tuple(refund_keys),
        )

    def _window_checks(
        self, identifier: str, tier: RateLimitTier, path: str
    ) -> list[tuple[AdmissionStage, RateLimitKey, WindowRule, str]]:
        checks: list[tuple[AdmissionStage, RateLimitKey, WindowRule, str]] = []
        endpoint_rule = self._config.endpoint_rule_for(path)
        if endpoint_rule is not None:
            checks.append(
                (
                    AdmissionStage.ENDPOINT,
                    RateLimitKey.for_endpoint(endpoint_rule.pattern, identifier),
                    endpoint_rule,
                    ENDPOINT_LIMIT_MESSAGE,
                )
            )

        tier_rule = self._config.tier_rule(tier)
        window_minutes = max(1, round(tier_rule.window_ms / 60000))
        checks.append(
            (
                AdmissionStage.TIER,
                RateLimitKey.for_tier(tier.value, identifier),
                tier_rule,
                f"Rate limit exceeded for {tier.value} tier. "
                f"Limit: {tier_rule.max_requests} requests per {window_minutes} minutes",
            )
        )
        checks.append(
            (
                AdmissionStage.GLOBAL,
                RateLimitKey.global_scope(identifier),
                self._config.global_rule,
                GLOBAL_LIMIT_MESSAGE,
            )
        )
        return checks

    async def _check_whitelist(self, identifier: str) -> bool:
        try:
            return await self._registry.is_whitelisted(identifier)
        except StoreUnavailableError as e:
            self._log_fail_open(AdmissionStage.WHITELIST, identifier, e)
            return False

    async def _check_blocklist(self, identifier: str) -> bool:
        try:
            if await self._registry.is_blacklisted(identifier):
                return True
            return await self._registry.is_blocked(identifier)
        except StoreUnavailableError as e:
            self._log_fail_open(AdmissionStage.BLOCKLIST, identifier, e)
            return False

    async def _reject(
        self, identifier: str, stage: AdmissionStage, message: str, retry_after_seconds: int
    ) -> Rejection:
        """Record the violation and build the rejection the escalation level calls for."""
        try:
            escalation = await self._violations.record(identifier)
        except StoreUnavailableError as e:
            logger.error(f"Could not record violation for {identifier} at {stage.value} stage: {e}")
            return Rejection.quota_exceeded(stage, message, retry_after_seconds)

        if escalation.blocked:
            return Rejection.blocked(stage, BLOCKED_MESSAGE)
        return Rejection.quota_exceeded(
            stage, message, math.ceil(retry_after_seconds * escalation.multiplier)
        )

    @staticmethod
    def _log_fail_open(stage: AdmissionStage, identifier: str, error: StoreUnavailableError) -> None:
        logger.error(
            f"Counter store unavailable at {stage.value} stage for {identifier}, "
            f"admitting request: {error}"
        )

    async def record_outcome(self, decision: AdmissionDecision, status_code: int) -> None:
        """
        Refund skip-successful endpoint counters when the response succeeded.

        Args:
            decision: Decision returned by ``evaluate`` for the request
            status_code: HTTP status of the downstream response
        """
        if not decision.admitted or not decision.refund_keys or status_code >= 400:
            return
        for store_key in decision.refund_keys:
            try:
                await self._windows.refund(store_key)
            except StoreUnavailableError as e:
                logger.error(f"Could not refund {store_key} for {decision.identifier}: {e}")

    # Administrative operations

    async def whitelist_add(self, identifier: str, duration_seconds: int | None = None) -> WhitelistEntry:
        entry = await self._registry.add_to_whitelist(identifier, duration_seconds)
        logger.info(
            f"Whitelisted {identifier} "
            + ("permanently" if duration_seconds is None else f"for {duration_seconds}s")
        )
        return entry

    async def whitelist_remove(self, identifier: str) -> bool:
        removed = await self._registry.remove_from_whitelist(identifier)
        logger.info(f"Removed {identifier} from whitelist (existed: {removed})")
        return removed

    async def blacklist_add(self, identifier: str) -> bool:
        added = await self._registry.add_to_blacklist(identifier)
        logger.info(f"Blacklisted {identifier} (new: {added})")
        return added

    async def blacklist_remove(self, identifier: str) -> bool:
        removed = await self._registry.remove_from_blacklist(identifier)
        logger.info(f"Removed {identifier} from blacklist (existed: {removed})")
        return removed

    def _fixed_window_keys(self, identifier: str) -> list[str]:
        keys = [window_key(RateLimitKey.global_scope(identifier))]
        keys.extend(window_key(RateLimitKey.for_tier(tier.value, identifier)) for tier in RateLimitTier)
        return keys

    async def reset(self, identifier: str) -> int:
        """
        Restore a clean slate: violations, penalty block, burst bucket and window counters.

        The administrative blacklist is left untouched.
        """
        deleted = await self._store.delete(
            *self._fixed_window_keys(identifier),
            burst_key(identifier),
            violations_key(identifier),
            blocked_key(identifier),
        )
        deleted += await self._store.delete_by_pattern(endpoint_window_pattern(identifier))
        logger.info(f"Reset rate limits for {identifier} ({deleted} keys cleared)")
        return deleted

    async def get_status(self, identifier: str) -> RateLimitStatus:
        whitelist = await self._registry.get_whitelist_entry(identifier)
        block = await self._registry.get_block(identifier)
        blacklisted = await self._registry.is_blacklisted(identifier)

        store_keys = self._fixed_window_keys(identifier)
        store_keys.extend(sorted(await self._store.keys(endpoint_window_pattern(identifier))))
        active_limits = []
        for store_key in store_keys:
            raw = await self._store.get(store_key)
            if raw is None:
                continue
            ttl_seconds = await self._store.ttl(store_key)
            active_limits.append(
                ActiveLimit(
                    key=store_key,
                    count=int(raw),
                    ttl_seconds=ttl_seconds,
                    resets_at=(
                        datetime.fromtimestamp(self._clock() + ttl_seconds, tz=UTC)
                        if ttl_seconds is not None and ttl_seconds >= 0
                        else None
                    ),
                )
            )

        return RateLimitStatus(
            identifier=identifier,
            blocked=block is not None or blacklisted,
            blacklisted=blacklisted,
            whitelisted=whitelist is not None,
            violations=await self._violations.count(identifier),
            block=block,
            whitelist=whitelist,
            burst_tokens=await self._burst.peek(identifier),
            active_limits=active_limits,
        )
