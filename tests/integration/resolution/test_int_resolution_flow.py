# tests/integration/resolution/test_int_resolution_flow.py - v1
"""End-to-end resolution over the SQLite repository and SQLite caches."""

from __future__ import annotations

import asyncio

import pytest

from shelfscan.core.models import ProductIdentity, ResolutionRequest
from shelfscan.discovery.base_search import DiscoveredBarcode
from shelfscan.progress.models import EventType, ProgressStage
from shelfscan.vision.base_analyzer import ExtractedText


def _statuses(outcome) -> list[tuple[int, str]]:
    return [(a.tier, a.status) for a in outcome.attempts]


class TestCacheFill:

    @pytest.mark.asyncio
    async def test_barcode_hit_survives_restart(self, make_service, product_db):
        await product_db.save(ProductIdentity(barcode="012345678905", name="Organic Oat Milk", brand="Oatly"))

        first = await make_service().resolve(ResolutionRequest(barcode="012345678905"))
        assert first.result.tier == 1
        assert first.result.cached is False

        restarted = make_service()
        second = await restarted.resolve(ResolutionRequest(barcode="0123 4567 8905"))
        assert second.success
        assert second.result.cached is True
        assert second.result.identity.id == first.result.identity.id
        assert second.attempts == []

    @pytest.mark.asyncio
    async def test_unknown_barcode_is_not_cached(self, make_service):
        service = make_service()
        outcome = await service.resolve(ResolutionRequest(barcode="0000000000"))
        assert outcome.error.code == "NOT_FOUND"
        assert (await service.cache_stats()).identity.total_entries == 0


class TestFallThrough:

    @pytest.mark.asyncio
    async def test_all_tiers_then_barcode_learned(self, make_service, visual, product_db, image):
        visual.extracted = ExtractedText(product_name="Crunchy Bites", brand="Acme", confidence=0.7)
        service = make_service()

        outcome = await service.resolve(
            ResolutionRequest(barcode="0000000000", image=image, session_id="fall-1")
        )
        assert outcome.success
        assert _statuses(outcome) == [(1, "not_found"), (2, "no_match"), (3, "no_match"), (4, "resolved")]
        assert "retaking the photo" in outcome.warning

        # Tier 4's identity is saved with the scanned barcode attached
        saved = await product_db.find_by_barcode("0000000000")
        assert saved is not None
        assert saved.name == "Mystery Snack"

        # Once the cache entry is gone, tier 1 finds the learned barcode
        await service.invalidate_identity("0000000000")
        again = await service.resolve(ResolutionRequest(barcode="0000000000"))
        assert again.result.tier == 1
        assert again.result.identity.id == saved.id

    @pytest.mark.asyncio
    async def test_progress_events_follow_tier_order(self, make_service, visual, image):
        visual.extracted = ExtractedText(product_name="Crunchy Bites", confidence=0.7)
        service = make_service()
        await service.resolve(ResolutionRequest(barcode="0000000000", image=image, session_id="order-1"))

        snapshot = service.poll_progress("order-1")
        stages = [e.stage for e in snapshot.events]
        assert stages == [
            ProgressStage.TIER1, ProgressStage.TIER2, ProgressStage.TIER3,
            ProgressStage.TIER4, ProgressStage.COMPLETE,
        ]
        assert [e.sequence for e in snapshot.events] == [1, 2, 3, 4, 5]
        timestamps = [e.timestamp for e in snapshot.events]
        assert timestamps == sorted(timestamps)
        assert [e.type for e in snapshot.events].count(EventType.COMPLETE) == 1

    @pytest.mark.asyncio
    async def test_discovered_product_reachable_by_barcode(self, make_service, visual, discovery, image, product_db):
        visual.extracted = ExtractedText(product_name="Crunchy Bites", brand="Acme", confidence=0.7)
        discovery.result = DiscoveredBarcode(
            barcode="4006381333931", source_url="https://example.test/crunchy", confidence=0.9,
            product_name="Crunchy Bites", brand="Acme",
        )
        service = make_service()
        outcome = await service.resolve(ResolutionRequest(image=image))
        assert outcome.result.tier == 3
        assert outcome.result.identity.metadata["discovered_barcode"] is True

        stored = await product_db.find_by_barcode("4006381333931")
        assert stored.id == outcome.result.identity.id

        by_barcode = await service.resolve(ResolutionRequest(barcode="4006381333931"))
        assert by_barcode.result.cached is True
        assert by_barcode.result.identity.id == stored.id


class TestIsolation:

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_keep_their_own_sessions(self, make_service, product_db, image):
        await product_db.save(ProductIdentity(barcode="012345678905", name="Organic Oat Milk"))
        service = make_service()
        outcomes = await asyncio.gather(
            service.resolve(ResolutionRequest(barcode="012345678905", session_id="a", owner_id="u1")),
            service.resolve(ResolutionRequest(barcode="0000000000", session_id="b", owner_id="u2")),
            service.resolve(ResolutionRequest(image=image, session_id="c", owner_id="u3")),
        )
        assert [o.session_id for o in outcomes] == ["a", "b", "c"]
        assert [o.success for o in outcomes] == [True, False, True]
        for session_id in ("a", "b", "c"):
            events = service.poll_progress(session_id).events
            assert {e.session_id for e in events} == {session_id}
            assert events[-1].type is not EventType.PROGRESS
