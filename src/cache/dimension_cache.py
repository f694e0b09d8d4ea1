# src/cache/dimension_cache.py - v1
"""Dimension cache: product id -> DimensionAnalysis with a TTL.

Expiry is fixed at store time (analyzed_at + TTL). Reads refresh
last_accessed_at through touch() without extending the expiry. Stale
entries are reported as absent and removed by clear_expired().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from shelfscan.cache.base_cache_store import BaseCacheStore
from shelfscan.cache.models import (
    DimensionCacheEntry,
    DimensionCacheStats,
    DimensionInvalidationFilter,
    DimensionLookupResult,
)
from shelfscan.dimensions.models import DimensionAnalysis

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DimensionCache:
    """TTL-bounded cache of five-dimension analyses keyed by product id."""

    def __init__(
        self,
        store: BaseCacheStore,
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def lookup(self, product_id: str) -> DimensionLookupResult:
        entry = await self._read(product_id)
        if entry is None:
            return DimensionLookupResult()
        if entry.is_expired(self._clock()):
            logger.debug("Dimension entry for %s expired at %s", product_id, entry.expires_at)
            return DimensionLookupResult(found=False, expired=True, entry=entry)
        return DimensionLookupResult(found=True, entry=entry)

    async def store(
        self, analysis: DimensionAnalysis, category: str | None = None
    ) -> DimensionCacheEntry:
        entry = DimensionCacheEntry(
            analysis=analysis.model_copy(update={"cached": False}),
            category=category,
            last_accessed_at=self._clock(),
            expires_at=analysis.analyzed_at + self._ttl,
        )
        await self._store.set(analysis.product_id, entry.model_dump(mode="json"))
        logger.info("Cached dimension analysis for %s until %s", analysis.product_id, entry.expires_at)
        return entry

    async def touch(self, product_id: str) -> None:
        """Refresh last_accessed_at and bump access_count.

        Read-modify-write without locking; a concurrent touch may be lost.
        """
        entry = await self._read(product_id)
        if entry is None:
            return
        entry.last_accessed_at = self._clock()
        entry.access_count += 1
        await self._store.set(product_id, entry.model_dump(mode="json"))

    async def invalidate(self, product_id: str) -> bool:
        removed = await self._store.delete(product_id)
        if removed:
            logger.info("Invalidated dimension analysis for %s", product_id)
        return removed

    async def bulk_invalidate(self, criteria: DimensionInvalidationFilter) -> int:
        """Remove every entry matching *criteria*. Returns the count removed."""
        removed = 0
        if criteria.product_ids is not None and criteria.category is None:
            for product_id in criteria.product_ids:
                removed += int(await self._store.delete(product_id))
        else:
            for key in await self._store.keys():
                entry = await self._read(key)
                if entry is not None and criteria.matches(entry):
                    removed += int(await self._store.delete(key))
        logger.info("Bulk-invalidated %d dimension entries", removed)
        return removed

    async def clear_expired(self) -> int:
        now = self._clock()
        removed = 0
        for key in await self._store.keys():
            entry = await self._read(key)
            if entry is not None and entry.is_expired(now):
                removed += int(await self._store.delete(key))
        if removed:
            logger.info("Cleared %d expired dimension entries", removed)
        return removed

    async def stats(self) -> DimensionCacheStats:
        now = self._clock()
        entries: list[DimensionCacheEntry] = []
        for key in await self._store.keys():
            entry = await self._read(key)
            if entry is not None:
                entries.append(entry)
        if not entries:
            return DimensionCacheStats()
        analyzed = [e.analysis.analyzed_at for e in entries]
        return DimensionCacheStats(
            total_entries=len(entries),
            expired_entries=sum(1 for e in entries if e.is_expired(now)),
            average_access_count=sum(e.access_count for e in entries) / len(entries),
            oldest_analyzed_at=min(analyzed),
            newest_analyzed_at=max(analyzed),
        )

    async def _read(self, product_id: str) -> DimensionCacheEntry | None:
        document = await self._store.get(product_id)
        if document is None:
            return None
        try:
            return DimensionCacheEntry.model_validate(document)
        except ValidationError as e:
            logger.warning("Discarding unreadable dimension entry %s: %s", product_id, e)
            return None
