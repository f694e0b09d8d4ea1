# src/api/facade.py - v1
"""Public service facade - single entry point for product scans.

Usage:
    from shelfscan.api.facade import build_service
    service = build_service(load_settings())
    outcome = await service.resolve(ResolutionRequest(barcode="012345678905"))

All collaborators are passed in explicitly; build_service() only wires
the configured adapters together.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from shelfscan.api.models import CacheStats, ScanOutcome
from shelfscan.cache.cache_factory import DIMENSION_NAMESPACE, IDENTITY_NAMESPACE, create_cache_store
from shelfscan.cache.dimension_cache import DimensionCache
from shelfscan.cache.fingerprint import key_type, normalize_barcode
from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.cache.models import DimensionInvalidationFilter
from shelfscan.config.settings import Settings, load_settings
from shelfscan.core.errors import ShelfScanError
from shelfscan.core.models import (
    ErrorInfo,
    ImagePayload,
    ProductContext,
    ProductIdentity,
    ResolutionOutcome,
    ResolutionRequest,
)
from shelfscan.dimensions.analyzer import DimensionAnalyzer
from shelfscan.dimensions.models import DimensionOutcome
from shelfscan.llm.retry import AI_CALL_POLICY, RetryPolicy
from shelfscan.logging.context import clear_context, stage_context
from shelfscan.progress.manager import SessionManager
from shelfscan.progress.models import ProgressEvent, ProgressSnapshot
from shelfscan.reporting.error_reporter import ErrorReporter
from shelfscan.reporting.models import ErrorReportOutcome, MisidentificationReport
from shelfscan.resolution.consistency import CrossStoreWriter
from shelfscan.resolution.orchestrator import ResolutionOrchestrator
from shelfscan.resolution.tiers.barcode_tier import BarcodeTier
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.resolution.tiers.discovery_tier import DiscoveryTier
from shelfscan.resolution.tiers.image_analysis_tier import ImageAnalysisTier
from shelfscan.resolution.tiers.visual_text_tier import VisualTextTier
from shelfscan.storage.retrying_repository import RetryingProductRepository
from shelfscan.tracking.event_sink import EventSink, JsonlEventSink, LoggingEventSink

if TYPE_CHECKING:
    from shelfscan.cache.base_cache_store import BaseCacheStore
    from shelfscan.discovery.base_search import WebDiscoverySearch
    from shelfscan.storage.base_repository import BaseProductRepository
    from shelfscan.vision.base_analyzer import VisualAnalyzer

logger = logging.getLogger(__name__)


class ProductScanService:
    def __init__(
        self,
        orchestrator: ResolutionOrchestrator,
        dimension_analyzer: DimensionAnalyzer,
        identity_cache: IdentityCache,
        dimension_cache: DimensionCache,
        sessions: SessionManager,
        reporter: ErrorReporter,
        repository: BaseProductRepository,
    ) -> None:
        self._orchestrator = orchestrator
        self._repository = repository
        self._dimensions = dimension_analyzer
        self._identity_cache = identity_cache
        self._dimension_cache = dimension_cache
        self._sessions = sessions
        self._reporter = reporter
        self._tasks: set[asyncio.Task[ResolutionOutcome]] = set()
        self._reaper: asyncio.Task[None] | None = None

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    # --- Lifecycle ---

    def start(self, reap_interval_s: float = 1.0) -> None:
        """Start the session reaper; requires a running event loop."""
        if self._reaper is None or self._reaper.done():
            self._reaper = asyncio.create_task(self._sessions.run_reaper(reap_interval_s))

    async def close(self) -> None:
        tasks = list(self._tasks)
        if self._reaper is not None:
            tasks.append(self._reaper)
            self._reaper = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # --- Resolution ---

    async def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        """Resolve a product identity; failures come back in the outcome."""
        try:
            emitter = self._sessions.create(request.owner_id, request.session_id)
        except ShelfScanError as e:
            logger.warning("Could not open progress session: %s", e.message)
            return ResolutionOutcome(
                success=False,
                session_id=request.session_id or "",
                error=ErrorInfo.from_exception(e),
            )
        try:
            return await self._orchestrator.resolve(request, emitter)
        finally:
            clear_context()

    async def start_resolution(self, request: ResolutionRequest) -> str:
        """Run a resolution in the background and return its session id.

        Raises:
            ResourceExhaustedError: The owner has too many active sessions.
            ConflictError: The requested session id is already in use.
        """
        emitter = self._sessions.create(request.owner_id, request.session_id)
        task = asyncio.create_task(self._orchestrator.resolve(request, emitter))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return emitter.session_id

    async def get_product(self, product_id: str) -> ProductIdentity | None:
        return await self._repository.find_by_id(product_id)

    async def get_dimension_analysis(
        self, product_id: str, context: ProductContext, image: ImagePayload
    ) -> DimensionOutcome:
        """Cache-first analysis of a saved product; failures come back in the outcome."""
        if not product_id:
            return DimensionOutcome(
                success=False,
                error=ErrorInfo.from_exception(
                    ShelfScanError("Product has no id; resolve it first", code="PRODUCT_NOT_PERSISTED")
                ),
            )
        with stage_context("dimensions"):
            return await self._dimensions.analyze(product_id, context, image)

    async def scan(self, request: ResolutionRequest, analyze_dimensions: bool = True) -> ScanOutcome:
        """Resolve, then analyze dimensions when an image is available."""
        resolution = await self.resolve(request)
        if not (analyze_dimensions and resolution.success and request.image is not None):
            return ScanOutcome(resolution=resolution)

        product = resolution.result.identity
        if not product.is_persisted:
            logger.info("Skipping dimension analysis: %r was not saved", product.name)
            return ScanOutcome(resolution=resolution)

        dimensions = await self.get_dimension_analysis(
            product.id, ProductContext.from_identity(product), request.image
        )
        return ScanOutcome(
            resolution=resolution,
            dimension_status="completed" if dimensions.success else "failed",
            dimensions=dimensions,
        )

    # --- Cache maintenance ---

    async def invalidate_identity(
        self, key: str | None = None, product_id: str | None = None
    ) -> list[str]:
        """Drop identity-cache entries by barcode/image key and/or product id."""
        removed: list[str] = []
        if key:
            normalized = key if key_type(key) == "image" else normalize_barcode(key)
            if await self._identity_cache.invalidate(normalized):
                removed.append(normalized)
        if product_id:
            removed.extend(k for k in await self._identity_cache.invalidate_product(product_id) if k not in removed)
        return removed

    async def invalidate_dimensions(
        self,
        product_id: str | None = None,
        criteria: DimensionInvalidationFilter | None = None,
    ) -> int:
        if criteria is not None:
            return await self._dimension_cache.bulk_invalidate(criteria)
        if product_id:
            return int(await self._dimension_cache.invalidate(product_id))
        return 0

    async def clear_expired_dimensions(self) -> int:
        return await self._dimension_cache.clear_expired()

    async def cache_stats(self) -> CacheStats:
        return CacheStats(
            identity=await self._identity_cache.stats(),
            dimensions=await self._dimension_cache.stats(),
            active_sessions=len(self._sessions),
        )

    # --- Progress ---

    def poll_progress(self, session_id: str) -> ProgressSnapshot:
        return self._sessions.poll(session_id)

    def stream_progress(self, session_id: str) -> AsyncIterator[ProgressEvent]:
        return self._sessions.stream(session_id)

    # --- Error reports ---

    async def report_misidentification(self, report: MisidentificationReport) -> ErrorReportOutcome:
        return await self._reporter.report(report)


def build_service(
    settings: Settings | None = None,
    *,
    repository: BaseProductRepository | None = None,
    visual_analyzer: VisualAnalyzer | None = None,
    discovery: WebDiscoverySearch | None = None,
    identity_store: BaseCacheStore | None = None,
    dimension_store: BaseCacheStore | None = None,
    event_sink: EventSink | None = None,
    sessions: SessionManager | None = None,
) -> ProductScanService:
    """Wire a ProductScanService from settings, overriding any collaborator."""
    settings = settings or load_settings()

    if repository is None:
        from shelfscan.storage.sqlite_repository import SqliteProductRepository
        repository = SqliteProductRepository(settings.repository_path)
    repository = RetryingProductRepository(
        repository,
        RetryPolicy(
            max_retries=settings.repository_max_retries,
            base_delay_s=settings.repository_base_delay_ms / 1000,
        ),
    )

    if visual_analyzer is None:
        from shelfscan.llm.client_factory import create_llm_client
        from shelfscan.vision.llm_analyzer import LLMVisualAnalyzer
        client = create_llm_client(settings.vision_provider, settings.vision_model, settings)
        visual_analyzer = LLMVisualAnalyzer(client, max_tokens=settings.vision_max_tokens)

    if discovery is None and settings.discovery_enabled:
        from shelfscan.discovery.barcode_lookup import BarcodeLookupSearch
        discovery = BarcodeLookupSearch(
            api_key=settings.barcode_lookup_api_key,
            base_url=settings.barcode_lookup_base_url,
            timeout_s=settings.discovery_timeout_s,
        )

    if event_sink is None:
        event_sink = (
            JsonlEventSink(settings.event_log_path) if settings.event_log_path else LoggingEventSink()
        )
    identity_cache = IdentityCache(identity_store or create_cache_store(IDENTITY_NAMESPACE, settings))
    dimension_cache = DimensionCache(
        dimension_store or create_cache_store(DIMENSION_NAMESPACE, settings),
        ttl_days=settings.dimension_cache_ttl_days,
    )
    writer = CrossStoreWriter(repository, identity_cache, event_sink)

    tiers: list[ResolutionTier] = [
        BarcodeTier(identity_cache, repository),
        VisualTextTier(visual_analyzer, repository),
    ]
    if discovery is not None:
        tiers.append(DiscoveryTier(discovery, writer))
    tiers.append(ImageAnalysisTier(visual_analyzer, repository))

    orchestrator = ResolutionOrchestrator(
        identity_cache,
        tiers,
        writer,
        repository,
        min_confidence=settings.min_confidence,
        low_confidence_warning=settings.low_confidence_warning,
        event_sink=event_sink,
    )
    dimension_analyzer = DimensionAnalyzer(
        dimension_cache,
        visual_analyzer,
        timeout_s=settings.dimension_timeout_s,
        policy=RetryPolicy(
            max_retries=settings.dimension_max_attempts - 1,
            base_delay_s=AI_CALL_POLICY.base_delay_s,
            jitter=AI_CALL_POLICY.jitter,
        ),
        event_sink=event_sink,
    )
    sessions = sessions or SessionManager(
        min_interval_s=settings.progress_min_interval_ms / 1000,
        cleanup_delay_s=settings.progress_cleanup_delay_s,
        session_timeout_s=settings.progress_session_timeout_s,
        max_sessions_per_owner=settings.progress_max_sessions_per_owner,
    )
    reporter = ErrorReporter(identity_cache, dimension_cache, repository, visual_analyzer, event_sink)

    logger.info(
        "Service ready: %d tiers, cache=%s, discovery=%s",
        len(tiers), settings.cache_backend, "on" if discovery is not None else "off",
    )
    return ProductScanService(
        orchestrator=orchestrator,
        dimension_analyzer=dimension_analyzer,
        identity_cache=identity_cache,
        dimension_cache=dimension_cache,
        sessions=sessions,
        reporter=reporter,
        repository=repository,
    )
