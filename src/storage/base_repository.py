# src/storage/base_repository.py - v1
"""Abstract product repository: the system of record for identities."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shelfscan.core.models import ProductIdentity
from shelfscan.storage.models import ProductMatch, TextQuery


class BaseProductRepository(ABC):
    """Unified interface for relational product stores.

    Invariants every implementation keeps: `id` is assigned on first save
    and never changes afterwards; `barcode` is unique when present.
    """

    @abstractmethod
    async def find_by_barcode(self, barcode: str) -> ProductIdentity | None:
        """Exact lookup by normalized barcode."""

    @abstractmethod
    async def find_by_text(self, query: TextQuery) -> ProductMatch | None:
        """Best fuzzy match for extracted text, with a score in [0, 1]."""

    @abstractmethod
    async def find_by_id(self, product_id: str) -> ProductIdentity | None:
        """Exact lookup by repository id."""

    @abstractmethod
    async def save(self, identity: ProductIdentity) -> ProductIdentity:
        """Insert or update; returns the stored identity with its id."""

    @abstractmethod
    async def flag_for_review(self, product_id: str, reason: str = "") -> None:
        """Mark a product as possibly misidentified."""
