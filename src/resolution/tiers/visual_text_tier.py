# src/resolution/tiers/visual_text_tier.py - v1
"""Tier 2: read packaging text and match it against the repository.

confidence = extraction quality x match score, so a weak extraction caps
what any match can reach.
"""

from __future__ import annotations

import logging

from shelfscan.core.models import ResolutionResult
from shelfscan.resolution.context import ResolutionContext
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.vision.base_analyzer import VisualAnalyzer

logger = logging.getLogger(__name__)


class VisualTextTier(ResolutionTier):
    tier = 2
    description = "packaging text search"

    def __init__(self, visual_analyzer: VisualAnalyzer, repository: BaseProductRepository) -> None:
        self._visual = visual_analyzer
        self._repository = repository

    def applies(self, ctx: ResolutionContext) -> bool:
        return ctx.image is not None

    async def attempt(self, ctx: ResolutionContext) -> ResolutionResult | None:
        extracted = await self._visual.extract_text(ctx.image)
        ctx.extracted = extracted
        if not extracted.has_identity_hint and not extracted.keywords:
            logger.info("No usable text on packaging")
            return None

        match = await self._repository.find_by_text(extracted.to_query())
        if match is None:
            logger.info("No repository match for %r", extracted.to_query().as_text())
            return None

        confidence = extracted.confidence * match.score
        logger.info(
            "Text match %s: extraction %.2f x match %.2f = %.2f",
            match.identity.id, extracted.confidence, match.score, confidence,
        )
        return ResolutionResult(identity=match.identity, tier=2, confidence=confidence)
