# tests/unit/storage/test_unit_sqlite_repository.py - v1
"""Tests for storage/sqlite_repository.py and storage/retrying_repository.py."""

from __future__ import annotations

import pytest

from shelfscan.core.errors import ConflictError, TransientError
from shelfscan.core.models import ProductIdentity
from shelfscan.llm.retry import RetryExhausted, RetryPolicy
from shelfscan.storage.models import TextQuery
from shelfscan.storage.retrying_repository import RetryingProductRepository
from shelfscan.storage.sqlite_repository import SqliteProductRepository

FAST = RetryPolicy(max_retries=3, base_delay_s=0.0)


@pytest.fixture
def repo():
    repository = SqliteProductRepository(":memory:")
    yield repository
    repository.close()


class TestSave:
    @pytest.mark.asyncio
    async def test_assigns_id(self, repo):
        stored = await repo.save(ProductIdentity(barcode="1", name="Oat Milk", metadata={"src": "t"}))
        assert stored.id
        assert await repo.find_by_id(stored.id) == stored
        assert await repo.find_by_barcode("1") == stored

    @pytest.mark.asyncio
    async def test_same_barcode_without_id_updates_in_place(self, repo):
        first = await repo.save(ProductIdentity(barcode="1", name="Oat Milk"))
        second = await repo.save(ProductIdentity(barcode="1", name="Oat Milk Barista"))
        assert second.id == first.id
        assert (await repo.find_by_id(first.id)).name == "Oat Milk Barista"

    @pytest.mark.asyncio
    async def test_barcode_conflict(self, repo):
        await repo.save(ProductIdentity(barcode="1", name="Oat Milk"))
        other = await repo.save(ProductIdentity(barcode="2", name="Soy Milk"))
        with pytest.raises(ConflictError):
            await repo.save(other.model_copy(update={"barcode": "1"}))

    @pytest.mark.asyncio
    async def test_null_barcodes_do_not_conflict(self, repo):
        a = await repo.save(ProductIdentity(name="Loose Apples"))
        b = await repo.save(ProductIdentity(name="Loose Pears"))
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_missing(self, repo):
        assert await repo.find_by_id("nope") is None
        assert await repo.find_by_barcode("nope") is None


class TestFindByText:
    @pytest.mark.asyncio
    async def test_best_match(self, repo):
        await repo.save(ProductIdentity(name="Organic Oat Milk", brand="Oatly"))
        await repo.save(ProductIdentity(name="Dark Chocolate", brand="Lindt"))
        match = await repo.find_by_text(TextQuery(product_name="Oat Milk Organic", brand="Oatly"))
        assert match is not None
        assert match.identity.name == "Organic Oat Milk"
        assert match.score > 0.7

    @pytest.mark.asyncio
    async def test_below_min_score(self):
        repo = SqliteProductRepository(":memory:", min_match_score=0.9)
        await repo.save(ProductIdentity(name="Dark Chocolate", brand="Lindt"))
        assert await repo.find_by_text(TextQuery(product_name="Chocolate Milk Powder Drink Mix")) is None
        repo.close()

    @pytest.mark.asyncio
    async def test_empty_query(self, repo):
        assert await repo.find_by_text(TextQuery()) is None

    @pytest.mark.asyncio
    async def test_keywords_only(self, repo):
        await repo.save(ProductIdentity(name="Oat Milk", brand="Oatly"))
        match = await repo.find_by_text(TextQuery(keywords=["oatly", "oat", "milk"]))
        assert match is not None
        assert match.score == 1.0


class TestFlag:
    @pytest.mark.asyncio
    async def test_flag_for_review(self, repo):
        stored = await repo.save(ProductIdentity(name="Oat Milk"))
        assert not await repo.is_flagged(stored.id)
        await repo.flag_for_review(stored.id, "user report")
        assert await repo.is_flagged(stored.id)


class TestRetryingRepository:
    @pytest.mark.asyncio
    async def test_transient_save_retried(self, repository):
        repository.save_errors = [TransientError("locked"), TransientError("locked")]
        retrying = RetryingProductRepository(repository, FAST)
        stored = await retrying.save(ProductIdentity(name="Tea"))
        assert stored.id
        assert repository.save_errors == []

    @pytest.mark.asyncio
    async def test_conflict_not_retried(self, repository):
        repository.save_errors = [ConflictError("dup"), TransientError("unused")]
        retrying = RetryingProductRepository(repository, FAST)
        with pytest.raises(ConflictError):
            await retrying.save(ProductIdentity(name="Tea"))
        assert len(repository.save_errors) == 1

    @pytest.mark.asyncio
    async def test_exhausted(self, repository):
        repository.save_errors = [TransientError("locked")] * 4
        retrying = RetryingProductRepository(repository, FAST)
        with pytest.raises(RetryExhausted) as exc_info:
            await retrying.save(ProductIdentity(name="Tea"))
        assert exc_info.value.attempts == 4

    @pytest.mark.asyncio
    async def test_reads_pass_through(self, repository):
        tea = repository.add(ProductIdentity(name="Tea", barcode="9"))
        retrying = RetryingProductRepository(repository, FAST)
        assert retrying.inner is repository
        assert await retrying.find_by_barcode("9") == tea
        assert await retrying.find_by_id(tea.id) == tea
