# tests/conftest.py - v1
"""Shared fixtures for unit and integration tests.

Provides in-memory fakes for every capability interface (repository,
visual analyzer, web discovery), controllable clocks, and a cache store
whose writes can be made to fail. No network, no API keys.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from shelfscan.cache.base_cache_store import Document
from shelfscan.cache.dimension_cache import DimensionCache
from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.cache.memory_store import MemoryCacheStore
from shelfscan.core.errors import TransientError
from shelfscan.core.models import ImagePayload, ProductContext, ProductIdentity
from shelfscan.discovery.base_search import DiscoveredBarcode, DiscoveryQuery, WebDiscoverySearch
from shelfscan.resolution.consistency import CrossStoreWriter
from shelfscan.resolution.orchestrator import ResolutionOrchestrator
from shelfscan.resolution.tiers.barcode_tier import BarcodeTier
from shelfscan.resolution.tiers.discovery_tier import DiscoveryTier
from shelfscan.resolution.tiers.image_analysis_tier import ImageAnalysisTier
from shelfscan.resolution.tiers.visual_text_tier import VisualTextTier
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.storage.models import ProductMatch, TextQuery
from shelfscan.tracking.event_sink import MemoryEventSink
from shelfscan.vision.base_analyzer import ExtractedText, ProductGuess, VisualAnalyzer


# === CLOCKS ===


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeTimer:
    """Monotonic seconds that only move when told to."""

    def __init__(self) -> None:
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


# === CACHE STORE ===


class FlakyCacheStore(MemoryCacheStore):
    """Memory store whose set/delete can be switched to fail."""

    def __init__(self, namespace: str = "default") -> None:
        super().__init__(namespace)
        self.fail_set = False
        self.fail_delete = False
        self.fail_get = False

    async def get(self, key: str) -> Document | None:
        if self.fail_get:
            raise ConnectionError("cache unavailable")
        return await super().get(key)

    async def set(self, key: str, document: Document) -> None:
        if self.fail_set:
            raise ConnectionError("cache unavailable")
        await super().set(key, document)

    async def delete(self, key: str) -> bool:
        if self.fail_delete:
            raise ConnectionError("cache unavailable")
        return await super().delete(key)


# === CAPABILITY FAKES ===


class FakeRepository(BaseProductRepository):
    def __init__(self) -> None:
        self.products: dict[str, ProductIdentity] = {}
        self.text_match: ProductMatch | None = None
        self.save_errors: list[BaseException] = []
        self.saved: list[ProductIdentity] = []
        self.flagged: dict[str, str] = {}
        self.text_queries: list[TextQuery] = []
        self._next_id = 1

    def add(self, identity: ProductIdentity) -> ProductIdentity:
        if not identity.id:
            identity = identity.model_copy(update={"id": f"prod-{self._next_id}"})
            self._next_id += 1
        self.products[identity.id] = identity
        return identity

    async def find_by_barcode(self, barcode: str) -> ProductIdentity | None:
        return next((p for p in self.products.values() if p.barcode == barcode), None)

    async def find_by_text(self, query: TextQuery) -> ProductMatch | None:
        self.text_queries.append(query)
        return self.text_match

    async def find_by_id(self, product_id: str) -> ProductIdentity | None:
        return self.products.get(product_id)

    async def save(self, identity: ProductIdentity) -> ProductIdentity:
        if self.save_errors:
            raise self.save_errors.pop(0)
        stored = self.add(identity)
        self.saved.append(stored)
        return stored

    async def flag_for_review(self, product_id: str, reason: str = "") -> None:
        self.flagged[product_id] = reason


class FakeVisualAnalyzer(VisualAnalyzer):
    def __init__(self) -> None:
        self.extracted = ExtractedText()
        self.guess = ProductGuess(
            identity=ProductIdentity(name="Mystery Snack", brand="Unknown Foods", category="Snacks"),
            confidence=0.42,
        )
        self.dimension_responses: list[str | BaseException] = []
        self.dimension_delay_s = 0.0
        self.calls: dict[str, int] = {"extract_text": 0, "identify_product": 0, "analyze_dimensions": 0}
        self.extract_error: BaseException | None = None
        self.identify_error: BaseException | None = None

    async def extract_text(self, image: ImagePayload) -> ExtractedText:
        self.calls["extract_text"] += 1
        if self.extract_error is not None:
            raise self.extract_error
        return self.extracted

    async def identify_product(self, image: ImagePayload) -> ProductGuess:
        self.calls["identify_product"] += 1
        if self.identify_error is not None:
            raise self.identify_error
        return self.guess

    async def analyze_dimensions(self, image: ImagePayload, context: ProductContext) -> str:
        self.calls["analyze_dimensions"] += 1
        if self.dimension_delay_s:
            await asyncio.sleep(self.dimension_delay_s)
        if not self.dimension_responses:
            raise TransientError("no scripted response")
        # The last scripted response repeats
        if len(self.dimension_responses) > 1:
            response = self.dimension_responses.pop(0)
        else:
            response = self.dimension_responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeDiscovery(WebDiscoverySearch):
    def __init__(self) -> None:
        self.result: DiscoveredBarcode | None = None
        self.error: BaseException | None = None
        self.queries: list[DiscoveryQuery] = []

    async def find_barcode(self, query: DiscoveryQuery) -> DiscoveredBarcode | None:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingTier:
    """Wraps a tier and records the order in which tiers were attempted."""

    def __init__(self, inner, log: list[int]) -> None:
        self._inner = inner
        self._log = log
        self.tier = inner.tier
        self.description = inner.description
        self.terminal = inner.terminal

    def applies(self, ctx) -> bool:
        return self._inner.applies(ctx)

    async def attempt(self, ctx):
        self._log.append(self.tier)
        return await self._inner.attempt(ctx)


# === FIXTURES ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def identity_store() -> FlakyCacheStore:
    return FlakyCacheStore("identity")


@pytest.fixture
def identity_cache(identity_store, clock) -> IdentityCache:
    return IdentityCache(identity_store, clock=clock)


@pytest.fixture
def dimension_store() -> FlakyCacheStore:
    return FlakyCacheStore("dimensions")


@pytest.fixture
def dimension_cache(dimension_store, clock) -> DimensionCache:
    return DimensionCache(dimension_store, ttl_days=30, clock=clock)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def visual() -> FakeVisualAnalyzer:
    return FakeVisualAnalyzer()


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery()


@pytest.fixture
def sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def writer(repository, identity_cache, sink) -> CrossStoreWriter:
    return CrossStoreWriter(repository, identity_cache, sink)


@pytest.fixture
def tier_log() -> list[int]:
    return []


@pytest.fixture
def orchestrator(identity_cache, repository, visual, discovery, writer, sink, tier_log):
    tiers = [
        BarcodeTier(identity_cache, repository),
        VisualTextTier(visual, repository),
        DiscoveryTier(discovery, writer),
        ImageAnalysisTier(visual, repository),
    ]
    return ResolutionOrchestrator(
        identity_cache,
        [RecordingTier(t, tier_log) for t in tiers],
        writer,
        repository,
        event_sink=sink,
    )


@pytest.fixture
def image() -> ImagePayload:
    return ImagePayload(data=b"synthetic-unmatched-image", media_type="image/png")


@pytest.fixture
def known_product() -> ProductIdentity:
    return ProductIdentity(
        barcode="012345678905",
        name="Organic Oat Milk",
        brand="Oatly",
        category="Beverages",
        size="1L",
    )


@pytest.fixture
def dimension_payload() -> dict[str, Any]:
    def dim(score: int, note: str) -> dict[str, Any]:
        return {"score": score, "explanation": note, "keyFactors": [note, "label reviewed"]}

    return {
        "dimensions": {
            "health": dim(72, "Low sugar"),
            "processing": dim(55, "Some additives"),
            "allergens": dim(80, "Gluten free"),
            "responsiblyProduced": dim(64, "Fair trade oats"),
            "environmentalImpact": dim(47, "Plastic cap"),
        },
        "overallConfidence": 0.82,
    }


@pytest.fixture
def dimension_response(dimension_payload) -> str:
    return "Here is the analysis:\n```json\n" + json.dumps(dimension_payload) + "\n```"
