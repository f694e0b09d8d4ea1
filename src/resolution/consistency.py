# src/resolution/consistency.py - v1
"""Writes that span the product repository and the identity cache.

The repository is the source of truth and is written first; the cache is
derived state and a cache failure after a committed repository write is
only logged. Speculative writes (tier 3) invert the order: the cache is
written first after snapshotting each key, and a repository failure
restores the snapshots. A failed restore is a consistency fault and is
recorded on the event sink for offline reconciliation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shelfscan.cache.fingerprint import short_key
from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.cache.models import IdentityCacheEntry
from shelfscan.core.models import ProductIdentity, Tier, WriteOutcome
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.tracking.event_sink import EventSink, safe_record
from shelfscan.tracking.models import SinkEvent

logger = logging.getLogger(__name__)


@dataclass
class WriteReport:
    outcome: WriteOutcome
    identity: ProductIdentity | None = None
    error: BaseException | None = None
    cache_synced: bool = True
    # Keys whose speculative value could not be rolled back
    faulted_keys: list[str] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.outcome is WriteOutcome.COMMITTED


class CrossStoreWriter:
    def __init__(
        self,
        repository: BaseProductRepository,
        identity_cache: IdentityCache,
        event_sink: EventSink | None = None,
    ) -> None:
        self._repository = repository
        self._cache = identity_cache
        self._sink = event_sink

    async def update_identity_and_cache(
        self,
        identity: ProductIdentity,
        keys: list[str],
        tier: Tier,
        confidence: float,
        *,
        speculative: bool = False,
        persist: bool = True,
        session_id: str | None = None,
    ) -> WriteReport:
        """Persist *identity* (when *persist*) and map every key to it.

        Returns a report instead of raising; the caller decides what a
        non-committed outcome means for the request.
        """
        if speculative:
            return await self._write_speculative(identity, keys, tier, confidence, session_id)

        stored = identity
        if persist:
            try:
                stored = await self._repository.save(identity)
            except Exception as e:
                logger.error("Repository write failed for %r: %s", identity.name, e)
                safe_record(self._sink, SinkEvent(
                    name="repository_write_failed",
                    level="error",
                    session_id=session_id,
                    data={"identity": identity.model_dump(mode="json"), "error": str(e)},
                ))
                return WriteReport(WriteOutcome.ABORTED, error=e, cache_synced=False)

        synced = await self._write_cache(stored, keys, tier, confidence)
        return WriteReport(WriteOutcome.COMMITTED, identity=stored, cache_synced=synced)

    # --- Internals ---

    async def _write_speculative(
        self,
        identity: ProductIdentity,
        keys: list[str],
        tier: Tier,
        confidence: float,
        session_id: str | None,
    ) -> WriteReport:
        snapshots: dict[str, IdentityCacheEntry | None] = {}
        try:
            for key in keys:
                snapshots[key] = await self._cache.snapshot(key)
        except Exception as e:
            # Nothing has been written yet
            logger.error("Could not snapshot identity cache before speculative write: %s", e)
            return WriteReport(WriteOutcome.ABORTED, error=e, cache_synced=False)

        written: list[str] = []
        for key in keys:
            try:
                await self._cache.put(key, identity, tier, confidence)
            except Exception:
                logger.warning("Speculative cache write failed for %s", short_key(key), exc_info=True)
                break
            written.append(key)

        try:
            stored = await self._repository.save(identity)
        except Exception as e:
            logger.warning("Repository rejected speculative identity %r: %s", identity.name, e)
            return await self._compensate(written, snapshots, identity, e, session_id)

        synced = await self._write_cache(stored, keys, tier, confidence)
        return WriteReport(WriteOutcome.COMMITTED, identity=stored, cache_synced=synced)

    async def _compensate(
        self,
        keys: list[str],
        snapshots: dict[str, IdentityCacheEntry | None],
        attempted: ProductIdentity,
        error: BaseException,
        session_id: str | None,
    ) -> WriteReport:
        faulted: list[str] = []
        for key in keys:
            snapshot = snapshots.get(key)
            try:
                await self._cache.restore(key, snapshot)
            except Exception as restore_error:
                faulted.append(key)
                logger.error(
                    "Consistency fault: could not restore identity cache key %s",
                    short_key(key), exc_info=True,
                )
                safe_record(self._sink, SinkEvent(
                    name="consistency_fault",
                    level="error",
                    session_id=session_id,
                    data={
                        "key": key,
                        "snapshot": snapshot.model_dump(mode="json") if snapshot else None,
                        "attempted": attempted.model_dump(mode="json"),
                        "repository_error": str(error),
                        "restore_error": str(restore_error),
                    },
                ))

        if faulted:
            return WriteReport(
                WriteOutcome.CONSISTENCY_FAULT, error=error, cache_synced=False, faulted_keys=faulted
            )
        logger.info("Rolled back %d speculative cache entries", len(keys))
        return WriteReport(WriteOutcome.COMPENSATED, error=error)

    async def _write_cache(
        self,
        identity: ProductIdentity,
        keys: list[str],
        tier: Tier,
        confidence: float,
    ) -> bool:
        synced = True
        for key in keys:
            try:
                await self._cache.put(key, identity, tier, confidence)
            except Exception:
                synced = False
                logger.warning(
                    "Identity cache write failed for %s; repository stays authoritative",
                    short_key(key), exc_info=True,
                )
        return synced
