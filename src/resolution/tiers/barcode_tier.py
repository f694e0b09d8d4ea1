# src/resolution/tiers/barcode_tier.py - v1
"""Tier 1: direct barcode lookup (identity cache, then repository)."""

from __future__ import annotations

import logging

from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.core.errors import NotFoundError
from shelfscan.core.models import ResolutionResult
from shelfscan.resolution.context import ResolutionContext
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.storage.base_repository import BaseProductRepository

logger = logging.getLogger(__name__)


class BarcodeTier(ResolutionTier):
    tier = 1
    description = "barcode lookup"

    def __init__(self, identity_cache: IdentityCache, repository: BaseProductRepository) -> None:
        self._cache = identity_cache
        self._repository = repository

    def applies(self, ctx: ResolutionContext) -> bool:
        return ctx.barcode is not None

    async def attempt(self, ctx: ResolutionContext) -> ResolutionResult | None:
        barcode = ctx.barcode
        try:
            lookup = await self._cache.lookup(barcode)
        except Exception:
            logger.warning("Identity cache read failed for %s; using repository", barcode, exc_info=True)
        else:
            if lookup.found:
                return ResolutionResult(identity=lookup.entry.identity, tier=1, confidence=1.0, cached=True)

        identity = await self._repository.find_by_barcode(barcode)
        if identity is not None:
            return ResolutionResult(identity=identity, tier=1, confidence=1.0)

        ctx.barcode_absent = True
        raise NotFoundError(f"Barcode {barcode} is not in the product database")
