# src/discovery/base_search.py - v1
"""Abstract web discovery capability used by tier 3."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class DiscoveryQuery(BaseModel):
    """Partial identity to search the web with."""

    product_name: str | None = None
    brand: str | None = None
    size: str | None = None
    category: str | None = None

    def search_terms(self) -> str:
        return " ".join(p for p in (self.product_name, self.brand, self.size) if p).strip()


class DiscoveredBarcode(BaseModel):
    barcode: str
    source_url: str
    confidence: float = Field(ge=0.0, le=1.0)
    barcode_format: str | None = None
    product_name: str | None = None
    brand: str | None = None
    category: str | None = None


class WebDiscoverySearch(ABC):
    """Finds a plausible barcode / product page for a partial identity."""

    @abstractmethod
    async def find_barcode(self, query: DiscoveryQuery) -> DiscoveredBarcode | None:
        """Best candidate, or None when nothing plausible was found."""
