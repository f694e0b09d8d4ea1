# src/cache/identity_cache.py - v1
"""Identity cache: key -> resolved ProductIdentity, no TTL.

Owns no business logic. The orchestrator decides when to write; entries
live until explicitly invalidated (e.g. a misidentification report).
Concurrent writes to the same key are last-write-wins.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from shelfscan.cache.base_cache_store import BaseCacheStore
from shelfscan.cache.fingerprint import key_type, short_key
from shelfscan.cache.models import IdentityCacheEntry, IdentityCacheStats, IdentityLookupResult
from shelfscan.core.models import ProductIdentity, Tier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityCache:
    """Point lookups keyed by normalized barcode or image fingerprint."""

    def __init__(
        self,
        store: BaseCacheStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def lookup(self, key: str) -> IdentityLookupResult:
        document = await self._store.get(key)
        if document is None:
            return IdentityLookupResult(found=False)
        try:
            entry = IdentityCacheEntry.model_validate(document)
        except ValidationError as e:
            logger.warning("Discarding unreadable identity entry %s: %s", short_key(key), e)
            return IdentityLookupResult(found=False)
        return IdentityLookupResult(found=True, entry=entry)

    async def store(self, entry: IdentityCacheEntry) -> None:
        await self._store.set(entry.key, entry.model_dump(mode="json"))
        logger.debug("Cached identity %s under %s", entry.identity.id, short_key(entry.key))

    async def put(
        self,
        key: str,
        identity: ProductIdentity,
        tier: Tier,
        confidence: float,
    ) -> IdentityCacheEntry:
        """Build an entry stamped with the current time and store it."""
        entry = IdentityCacheEntry(
            key=key,
            key_type=key_type(key),
            identity=identity,
            tier=tier,
            confidence=confidence,
            stored_at=self._clock(),
        )
        await self.store(entry)
        return entry

    async def invalidate(self, key: str) -> bool:
        removed = await self._store.delete(key)
        if removed:
            logger.info("Invalidated identity cache key %s", short_key(key))
        return removed

    async def invalidate_product(self, product_id: str) -> list[str]:
        """Remove every key that resolves to *product_id*."""
        removed: list[str] = []
        for key in await self._store.keys():
            result = await self.lookup(key)
            if result.entry is not None and result.entry.identity.id == product_id:
                if await self._store.delete(key):
                    removed.append(key)
        if removed:
            logger.info("Invalidated %d identity keys for product %s", len(removed), product_id)
        return removed

    # --- Compensation support ---

    async def snapshot(self, key: str) -> IdentityCacheEntry | None:
        """Current entry for *key*, used to undo a speculative write."""
        return (await self.lookup(key)).entry

    async def restore(self, key: str, snapshot: IdentityCacheEntry | None) -> None:
        """Put *key* back to a snapshot; a None snapshot means 'absent'."""
        if snapshot is None:
            await self._store.delete(key)
        else:
            await self._store.set(key, snapshot.model_dump(mode="json"))

    async def stats(self) -> IdentityCacheStats:
        by_tier: Counter[int] = Counter()
        by_key_type: Counter[str] = Counter()
        for key in await self._store.keys():
            entry = (await self.lookup(key)).entry
            if entry is None:
                continue
            by_tier[entry.tier] += 1
            by_key_type[entry.key_type] += 1
        return IdentityCacheStats(
            total_entries=sum(by_tier.values()),
            by_tier=dict(by_tier),
            by_key_type=dict(by_key_type),
        )
