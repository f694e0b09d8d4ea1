# src/cache/models.py - v1
"""Cache domain models for the identity and dimension caches."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from shelfscan.cache.fingerprint import KeyType
from shelfscan.core.models import ProductIdentity, Tier
from shelfscan.dimensions.models import DimensionAnalysis


# === IDENTITY CACHE ===


class IdentityCacheEntry(BaseModel):
    """Resolved identity stored under a barcode or image key. Never expires."""

    key: str
    key_type: KeyType = "barcode"
    identity: ProductIdentity
    tier: Tier
    confidence: float = Field(ge=0.0, le=1.0)
    stored_at: datetime


class IdentityLookupResult(BaseModel):
    found: bool = False
    entry: IdentityCacheEntry | None = None


class IdentityCacheStats(BaseModel):
    total_entries: int = 0
    by_tier: dict[int, int] = Field(default_factory=dict)
    by_key_type: dict[str, int] = Field(default_factory=dict)


# === DIMENSION CACHE ===


class DimensionCacheEntry(BaseModel):
    """Analysis plus TTL bookkeeping; expires_at = analyzed_at + TTL."""

    analysis: DimensionAnalysis
    category: str | None = None
    last_accessed_at: datetime
    expires_at: datetime
    access_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class DimensionLookupResult(BaseModel):
    """A lookup outcome. Expired entries are reported with found=False."""

    found: bool = False
    expired: bool = False
    entry: DimensionCacheEntry | None = None


class DimensionInvalidationFilter(BaseModel):
    """Selects dimension entries for bulk invalidation (criteria are ANDed)."""

    product_ids: list[str] | None = None
    category: str | None = None

    def matches(self, entry: DimensionCacheEntry) -> bool:
        if self.product_ids is not None and entry.analysis.product_id not in self.product_ids:
            return False
        if self.category is not None and entry.category != self.category:
            return False
        return True


class DimensionCacheStats(BaseModel):
    total_entries: int = 0
    expired_entries: int = 0
    average_access_count: float = 0.0
    oldest_analyzed_at: datetime | None = None
    newest_analyzed_at: datetime | None = None
