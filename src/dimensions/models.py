# src/dimensions/models.py - v1
"""Five-dimension product analysis models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from shelfscan.core.models import ErrorInfo

DimensionName = Literal[
    "health",
    "processing",
    "allergens",
    "responsiblyProduced",
    "environmentalImpact",
]

DIMENSION_NAMES: tuple[str, ...] = (
    "health",
    "processing",
    "allergens",
    "responsiblyProduced",
    "environmentalImpact",
)


class DimensionScore(BaseModel):
    """Score for one dimension (100 is best)."""

    score: int = Field(ge=0, le=100)
    explanation: str = Field(min_length=1)
    key_factors: list[str] = Field(min_length=1)


class DimensionAnalysis(BaseModel):
    """All five dimensions for one product; partial analyses are invalid."""

    product_id: str
    dimensions: dict[DimensionName, DimensionScore]
    overall_confidence: float = Field(ge=0.0, le=1.0)
    analyzed_at: datetime
    cached: bool = False

    @model_validator(mode="after")
    def _require_all_dimensions(self) -> DimensionAnalysis:
        missing = [name for name in DIMENSION_NAMES if name not in self.dimensions]
        if missing:
            raise ValueError(f"Missing dimensions: {', '.join(missing)}")
        return self


class DimensionOutcome(BaseModel):
    """What get_dimension_analysis returns; never raises."""

    success: bool
    analysis: DimensionAnalysis | None = None
    cached: bool = False
    processing_time_ms: float = 0.0
    error: ErrorInfo | None = None
