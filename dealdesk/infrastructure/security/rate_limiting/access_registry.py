"""
Block/Whitelist Registry.

Authoritative allow/deny overrides consulted before any quota check:

- whitelist entries (JSON records with an optional TTL) exempt a caller from
  every check;
- penalty blocks (JSON records with the block duration as TTL) are written by
  the violation tracker;
- the administrative blacklist is a plain store set with no expiry.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import ValidationError

from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.domain.entities.access_records import BlockRecord, WhitelistEntry
from dealdesk.infrastructure.security.rate_limiting.keys import (
    blacklist_set_key,
    blocked_key,
    whitelist_key,
)

logger = logging.getLogger(__name__)


class AccessRegistry:
    """Reads and writes allow/deny overrides in the counter store."""

    def __init__(self, store: ICounterStore, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)

    # Whitelist

    async def add_to_whitelist(
        self, identifier: str, duration_seconds: int | None = None
    ) -> WhitelistEntry:
        """
        Exempt ``identifier`` from every admission check.

        Args:
            identifier: Caller identifier
            duration_seconds: Lifetime of the entry; None makes it permanent

        Returns:
            The stored WhitelistEntry
        """
        added_at = self._now()
        expires_at = None
        if duration_seconds is not None:
            expires_at = datetime.fromtimestamp(self._clock() + duration_seconds, tz=UTC)
        entry = WhitelistEntry(
            identifier=identifier,
            added_at=added_at,
            expires_at=expires_at,
            permanent=duration_seconds is None,
        )
        await self._store.set(whitelist_key(identifier), entry.model_dump_json(), ttl_seconds=duration_seconds)
        return entry

    async def remove_from_whitelist(self, identifier: str) -> bool:
        return await self._store.delete(whitelist_key(identifier)) > 0

    async def get_whitelist_entry(self, identifier: str) -> WhitelistEntry | None:
        raw = await self._store.get(whitelist_key(identifier))
        if raw is None:
            return None
        try:
            return WhitelistEntry.model_validate_json(raw)
        except ValidationError:
            # A bare marker value still counts as a permanent entry
            logger.warning(f"Unreadable whitelist entry for {identifier}, treating as permanent")
            return WhitelistEntry(identifier=identifier, added_at=self._now(), permanent=True)

    async def is_whitelisted(self, identifier: str) -> bool:
        return await self._store.get(whitelist_key(identifier)) is not None

    # Penalty blocks

    async def block(self, identifier: str, reason: str, violations: int, duration_seconds: int) -> BlockRecord:
        blocked_at = self._now()
        record = BlockRecord(
            identifier=identifier,
            reason=reason,
            violations=violations,
            blocked_at=blocked_at,
            expires_at=datetime.fromtimestamp(self._clock() + duration_seconds, tz=UTC),
        )
        await self._store.set(blocked_key(identifier), record.model_dump_json(), ttl_seconds=duration_seconds)
        logger.warning(f"Blocked {identifier} for {duration_seconds}s: {reason} ({violations} violations)")
        return record

    async def get_block(self, identifier: str) -> BlockRecord | None:
        raw = await self._store.get(blocked_key(identifier))
        if raw is None:
            return None
        try:
            return BlockRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Unreadable block record for {identifier}")
            now = self._now()
            return BlockRecord(identifier=identifier, reason="unknown", blocked_at=now, expires_at=now)

    async def is_blocked(self, identifier: str) -> bool:
        return await self._store.get(blocked_key(identifier)) is not None

    # Administrative blacklist

    async def add_to_blacklist(self, identifier: str) -> bool:
        return await self._store.set_add(blacklist_set_key(), identifier)

    async def remove_from_blacklist(self, identifier: str) -> bool:
        return await self._store.set_remove(blacklist_set_key(), identifier)

    async def is_blacklisted(self, identifier: str) -> bool:
        return await self._store.set_is_member(blacklist_set_key(), identifier)
