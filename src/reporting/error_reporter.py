# src/reporting/error_reporter.py - v1
"""Handle misidentification reports.

Every step is best-effort and independent: cache invalidation, flagging
the product for review and proposing an alternative each log their own
failure without stopping the others. The report itself is always
recorded on the event sink.
"""

from __future__ import annotations

import logging

from shelfscan.cache.dimension_cache import DimensionCache
from shelfscan.cache.fingerprint import image_fingerprint, normalize_barcode, short_key
from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.core.errors import ShelfScanError
from shelfscan.reporting.models import ErrorReportOutcome, MisidentificationReport
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.tracking.event_sink import EventSink, safe_record
from shelfscan.tracking.models import SinkEvent
from shelfscan.vision.base_analyzer import ProductGuess, VisualAnalyzer

logger = logging.getLogger(__name__)


class ErrorReporter:
    def __init__(
        self,
        identity_cache: IdentityCache,
        dimension_cache: DimensionCache,
        repository: BaseProductRepository,
        visual_analyzer: VisualAnalyzer | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._identity_cache = identity_cache
        self._dimension_cache = dimension_cache
        self._repository = repository
        self._visual = visual_analyzer
        self._sink = event_sink

    async def report(self, report: MisidentificationReport) -> ErrorReportOutcome:
        product = report.incorrect_product
        logger.info("Misidentification report %s for product %s", report.report_id, product.id)
        safe_record(self._sink, SinkEvent(
            name="misidentification_report",
            level="warning",
            session_id=report.session_id,
            data=report.model_dump(mode="json", exclude={"image"}),
        ))

        invalidated = await self._invalidate_identity(report)
        dimensions_invalidated = await self._invalidate_dimensions(product.id)
        flagged = await self._flag(product.id, report.feedback or "")
        alternative = await self._alternative(report)

        if alternative is not None:
            message = "Error reported. Alternative product identified."
        else:
            message = "Error reported. Product flagged for manual review."
        return ErrorReportOutcome(
            success=True,
            report_id=report.report_id,
            invalidated_keys=invalidated,
            dimensions_invalidated=dimensions_invalidated,
            flagged=flagged,
            alternative=alternative,
            message=message,
        )

    async def _invalidate_identity(self, report: MisidentificationReport) -> list[str]:
        keys: list[str] = []
        try:
            if report.barcode:
                keys.append(normalize_barcode(report.barcode))
        except ShelfScanError:
            logger.warning("Ignoring unusable barcode %r in report %s", report.barcode, report.report_id)
        image_key = report.image_key or (image_fingerprint(report.image) if report.image else None)
        if image_key:
            keys.append(image_key)

        removed: list[str] = []
        for key in keys:
            try:
                if await self._identity_cache.invalidate(key):
                    removed.append(key)
            except Exception:
                logger.warning("Could not invalidate identity key %s", short_key(key), exc_info=True)
        if report.incorrect_product.id:
            try:
                for key in await self._identity_cache.invalidate_product(report.incorrect_product.id):
                    if key not in removed:
                        removed.append(key)
            except Exception:
                logger.warning("Could not invalidate keys of product %s",
                               report.incorrect_product.id, exc_info=True)
        return removed

    async def _invalidate_dimensions(self, product_id: str) -> bool:
        if not product_id:
            return False
        try:
            return await self._dimension_cache.invalidate(product_id)
        except Exception:
            logger.warning("Could not invalidate dimension analysis of %s", product_id, exc_info=True)
            return False

    async def _flag(self, product_id: str, reason: str) -> bool:
        if not product_id:
            return False
        try:
            if await self._repository.find_by_id(product_id) is None:
                logger.info("Reported product %s is not in the repository", product_id)
                return False
            await self._repository.flag_for_review(product_id, reason)
        except Exception:
            logger.error("Could not flag product %s for review", product_id, exc_info=True)
            return False
        return True

    async def _alternative(self, report: MisidentificationReport) -> ProductGuess | None:
        """Re-run image identification; the guess is returned, never cached."""
        if report.image is None or self._visual is None:
            return None
        try:
            guess = await self._visual.identify_product(report.image)
        except Exception:
            logger.warning("Alternative identification failed for report %s", report.report_id, exc_info=True)
            return None
        if guess.identity.name.strip().lower() == report.incorrect_product.name.strip().lower():
            logger.info("Alternative identification repeated the reported product")
            return None
        return guess
