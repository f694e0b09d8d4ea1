# src/resolution/tiers/image_analysis_tier.py - v1
"""Tier 4: identify the product from the image alone.

Terminal tier: its answer is accepted at any confidence and the caller
is warned when confidence is low. When the guess matches a product the
repository already knows, that product is reused instead of creating a
duplicate.
"""

from __future__ import annotations

import logging

from shelfscan.core.models import ResolutionResult
from shelfscan.resolution.context import ResolutionContext
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.storage.models import TextQuery
from shelfscan.vision.base_analyzer import VisualAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_REUSE_SCORE = 0.8


class ImageAnalysisTier(ResolutionTier):
    tier = 4
    description = "image analysis"
    terminal = True

    def __init__(
        self,
        visual_analyzer: VisualAnalyzer,
        repository: BaseProductRepository,
        reuse_score: float = DEFAULT_REUSE_SCORE,
    ) -> None:
        self._visual = visual_analyzer
        self._repository = repository
        self._reuse_score = reuse_score

    def applies(self, ctx: ResolutionContext) -> bool:
        return ctx.image is not None

    async def attempt(self, ctx: ResolutionContext) -> ResolutionResult | None:
        guess = await self._visual.identify_product(ctx.image)
        identity = guess.identity

        query = TextQuery(
            product_name=identity.name,
            brand=identity.brand or None,
            size=identity.size,
        )
        match = await self._repository.find_by_text(query)
        if match is not None and match.score >= self._reuse_score:
            logger.info("Image guess %r matches existing product %s", identity.name, match.identity.id)
            identity = match.identity

        return ResolutionResult(identity=identity, tier=4, confidence=guess.confidence)
