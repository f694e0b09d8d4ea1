# src/resolution/tiers/discovery_tier.py - v1
"""Tier 3: discover a barcode on the web from the text tier 2 read.

The discovered identity is written speculatively: identity cache first,
repository second, with the cache rolled back when the repository
refuses the write.
"""

from __future__ import annotations

import logging

from shelfscan.cache.fingerprint import normalize_barcode
from shelfscan.core.errors import DataConsistencyError
from shelfscan.core.models import ProductIdentity, ResolutionResult, WriteOutcome
from shelfscan.discovery.base_search import DiscoveredBarcode, DiscoveryQuery, WebDiscoverySearch
from shelfscan.resolution.consistency import CrossStoreWriter
from shelfscan.resolution.context import ResolutionContext
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.vision.base_analyzer import ExtractedText

logger = logging.getLogger(__name__)


class DiscoveryTier(ResolutionTier):
    tier = 3
    description = "barcode discovery"

    def __init__(self, discovery: WebDiscoverySearch, writer: CrossStoreWriter) -> None:
        self._discovery = discovery
        self._writer = writer

    def applies(self, ctx: ResolutionContext) -> bool:
        return ctx.extracted is not None and ctx.extracted.has_identity_hint

    async def attempt(self, ctx: ResolutionContext) -> ResolutionResult | None:
        extracted = ctx.extracted
        found = await self._discovery.find_barcode(DiscoveryQuery(
            product_name=extracted.product_name,
            brand=extracted.brand,
            size=extracted.size,
            category=extracted.category,
        ))
        if found is None:
            logger.info("Discovery found no barcode for %r", extracted.product_name)
            return None

        identity = _identity_from(found, extracted)
        keys = [identity.barcode] + ([ctx.image_key] if ctx.image_key else [])
        report = await self._writer.update_identity_and_cache(
            identity,
            keys,
            tier=3,
            confidence=found.confidence,
            speculative=True,
            session_id=ctx.request.session_id,
        )

        if report.outcome is WriteOutcome.CONSISTENCY_FAULT:
            raise DataConsistencyError(
                f"Identity cache could not be restored after failed write of {identity.barcode}",
                details={"keys": report.faulted_keys},
            ) from report.error
        if not report.committed:
            # Cache already rolled back; the repository error decides fall-through
            raise report.error

        ctx.persisted_identity_id = report.identity.id
        logger.info("Discovered barcode %s (confidence %.2f)", identity.barcode, found.confidence)
        return ResolutionResult(identity=report.identity, tier=3, confidence=found.confidence)


def _identity_from(found: DiscoveredBarcode, extracted: ExtractedText) -> ProductIdentity:
    return ProductIdentity(
        barcode=normalize_barcode(found.barcode),
        name=found.product_name or extracted.product_name or "Unknown Product",
        brand=found.brand or extracted.brand or "",
        category=found.category or extracted.category or "Unknown",
        size=extracted.size,
        metadata={
            "discovered_barcode": True,
            "barcode_format": found.barcode_format,
            "source_url": found.source_url,
        },
    )
