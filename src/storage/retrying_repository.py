# src/storage/retrying_repository.py - v1
"""Repository decorator that retries writes on transient failures.

Reads pass straight through. Writes (save, flag_for_review) are retried
per the write policy: up to 3 retries at 100ms / 200ms / 400ms. Conflict
and validation errors are never retried.
"""

from __future__ import annotations

from shelfscan.core.models import ProductIdentity
from shelfscan.llm.retry import REPOSITORY_WRITE_POLICY, RetryPolicy, with_retry
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.storage.models import ProductMatch, TextQuery


class RetryingProductRepository(BaseProductRepository):
    def __init__(
        self,
        inner: BaseProductRepository,
        policy: RetryPolicy = REPOSITORY_WRITE_POLICY,
    ) -> None:
        self._inner = inner
        self._policy = policy

    @property
    def inner(self) -> BaseProductRepository:
        return self._inner

    async def find_by_barcode(self, barcode: str) -> ProductIdentity | None:
        return await self._inner.find_by_barcode(barcode)

    async def find_by_text(self, query: TextQuery) -> ProductMatch | None:
        return await self._inner.find_by_text(query)

    async def find_by_id(self, product_id: str) -> ProductIdentity | None:
        return await self._inner.find_by_id(product_id)

    async def save(self, identity: ProductIdentity) -> ProductIdentity:
        return await with_retry(
            self._inner.save, identity,
            operation="repository.save",
            policy=self._policy,
        )

    async def flag_for_review(self, product_id: str, reason: str = "") -> None:
        await with_retry(
            self._inner.flag_for_review, product_id, reason,
            operation="repository.flag_for_review",
            policy=self._policy,
        )
