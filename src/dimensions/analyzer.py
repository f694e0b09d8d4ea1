# src/dimensions/analyzer.py - v1
"""Cache-first five-dimension analysis.

A fresh analysis races the retrying AI call against a hard timeout;
when the timeout wins, the in-flight call is cancelled. Only fully
validated analyses are cached. analyze() reports failures in the
returned DimensionOutcome instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from shelfscan.cache.dimension_cache import DimensionCache
from shelfscan.core.errors import AnalysisValidationError, ErrorKind
from shelfscan.core.models import ErrorInfo, ImagePayload, ProductContext
from shelfscan.core.parsing import ParsedErr
from shelfscan.dimensions.models import DimensionAnalysis, DimensionOutcome
from shelfscan.dimensions.parser import parse_dimension_response, validate_dimension_payload
from shelfscan.llm.retry import AI_CALL_POLICY, RetryPolicy, with_retry
from shelfscan.tracking.event_sink import EventSink, safe_record
from shelfscan.tracking.models import SinkEvent
from shelfscan.vision.base_analyzer import VisualAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DimensionAnalyzer:
    def __init__(
        self,
        cache: DimensionCache,
        visual_analyzer: VisualAnalyzer,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        policy: RetryPolicy = AI_CALL_POLICY,
        clock: Callable[[], datetime] = _utcnow,
        event_sink: EventSink | None = None,
    ) -> None:
        self._cache = cache
        self._sink = event_sink
        self._visual = visual_analyzer
        self._timeout_s = timeout_s
        self._policy = policy
        self._clock = clock

    async def analyze(
        self,
        product_id: str,
        context: ProductContext,
        image: ImagePayload,
    ) -> DimensionOutcome:
        started = time.monotonic()

        cached = await self._cached(product_id)
        if cached is not None:
            return self._record(product_id, DimensionOutcome(
                success=True,
                analysis=cached,
                cached=True,
                processing_time_ms=(time.monotonic() - started) * 1000,
            ))

        try:
            analysis = await self._analyze_fresh(product_id, context, image)
        except _AnalysisFailed as failure:
            logger.warning("Dimension analysis for %s failed [%s]: %s",
                           product_id, failure.info.code, failure.info.message)
            return self._record(product_id, DimensionOutcome(
                success=False,
                error=failure.info,
                processing_time_ms=(time.monotonic() - started) * 1000,
            ))

        try:
            await self._cache.store(analysis, category=context.category)
        except Exception:
            logger.warning("Could not cache dimension analysis for %s", product_id, exc_info=True)

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("Analyzed dimensions for %s in %.0fms", product_id, elapsed_ms)
        return self._record(
            product_id, DimensionOutcome(success=True, analysis=analysis, processing_time_ms=elapsed_ms)
        )

    def _record(self, product_id: str, outcome: DimensionOutcome) -> DimensionOutcome:
        """Report one analysis (hit, fresh or failed) to the event sink."""
        safe_record(self._sink, SinkEvent(
            name="dimension_analysis",
            level="info" if outcome.success else "warning",
            data={
                "product_id": product_id,
                "cached": outcome.cached,
                "success": outcome.success,
                "processing_time_ms": round(outcome.processing_time_ms, 1),
                "error_code": outcome.error.code if outcome.error else None,
            },
        ))
        return outcome

    async def _cached(self, product_id: str) -> DimensionAnalysis | None:
        try:
            lookup = await self._cache.lookup(product_id)
        except Exception:
            logger.warning("Dimension cache read failed for %s; analyzing fresh", product_id, exc_info=True)
            return None
        if not lookup.found:
            return None
        try:
            await self._cache.touch(product_id)
        except Exception:
            logger.warning("Could not refresh access time for %s", product_id, exc_info=True)
        logger.info("Dimension cache hit for %s", product_id)
        return lookup.entry.analysis.model_copy(update={"cached": True})

    async def _analyze_fresh(
        self,
        product_id: str,
        context: ProductContext,
        image: ImagePayload,
    ) -> DimensionAnalysis:
        try:
            raw = await asyncio.wait_for(
                with_retry(
                    self._visual.analyze_dimensions,
                    image,
                    context,
                    operation="dimension_analysis",
                    policy=self._policy,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise _AnalysisFailed(ErrorInfo(
                code="TIMEOUT",
                kind=ErrorKind.TRANSIENT,
                message=f"Dimension analysis timed out after {self._timeout_s:.0f}s",
                retryable=True,
            )) from e
        except Exception as e:
            raise _AnalysisFailed(ErrorInfo(
                code="AI_ANALYSIS_FAILED",
                kind=ErrorKind.TRANSIENT,
                message=f"Failed to analyze product dimensions: {e}",
                retryable=True,
            )) from e

        parsed = parse_dimension_response(raw)
        if isinstance(parsed, ParsedErr):
            raise _AnalysisFailed(ErrorInfo(
                code="INVALID_RESPONSE",
                kind=ErrorKind.VALIDATION,
                message=f"Could not parse dimension analysis: {parsed.reason}",
                retryable=False,
            ))

        try:
            return validate_dimension_payload(parsed.value, product_id, self._clock())
        except AnalysisValidationError as e:
            raise _AnalysisFailed(ErrorInfo.from_exception(e)) from e


class _AnalysisFailed(Exception):
    def __init__(self, info: ErrorInfo) -> None:
        super().__init__(info.message)
        self.info = info
