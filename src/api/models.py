# src/api/models.py - v1
"""Service-level result models: ScanOutcome and CacheStats."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from shelfscan.cache.models import DimensionCacheStats, IdentityCacheStats
from shelfscan.core.models import ResolutionOutcome
from shelfscan.dimensions.models import DimensionOutcome

DimensionStatus = Literal["completed", "failed", "skipped"]


class ScanOutcome(BaseModel):
    """Resolution plus the optional dimension analysis that followed it.

    A failed dimension analysis never fails the scan; it only sets
    dimension_status to "failed".
    """

    resolution: ResolutionOutcome
    dimension_status: DimensionStatus = "skipped"
    dimensions: DimensionOutcome | None = None

    @property
    def success(self) -> bool:
        return self.resolution.success


class CacheStats(BaseModel):
    identity: IdentityCacheStats
    dimensions: DimensionCacheStats
    active_sessions: int = 0
