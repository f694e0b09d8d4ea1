# src/vision/base_analyzer.py - v1
"""Abstract visual analyzer capability consumed by tiers 2 and 4 and by
the dimension analyzer."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from shelfscan.core.models import ImagePayload, ProductContext, ProductIdentity
from shelfscan.storage.models import TextQuery


class ExtractedText(BaseModel):
    """Text read off the packaging, with an extraction-quality score."""

    text: str = ""
    product_name: str | None = None
    brand: str | None = None
    size: str | None = None
    category: str | None = None
    keywords: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def has_identity_hint(self) -> bool:
        return bool(self.product_name or self.brand)

    def to_query(self) -> TextQuery:
        return TextQuery(
            product_name=self.product_name,
            brand=self.brand,
            size=self.size,
            keywords=self.keywords,
        )


class ProductGuess(BaseModel):
    """A complete identity proposed from the image alone."""

    identity: ProductIdentity
    confidence: float = Field(ge=0.0, le=1.0)


class VisualAnalyzer(ABC):
    """AI vision capability."""

    @abstractmethod
    async def extract_text(self, image: ImagePayload) -> ExtractedText:
        """Read visible packaging text."""

    @abstractmethod
    async def identify_product(self, image: ImagePayload) -> ProductGuess:
        """Propose a full identity (name, brand, category) with confidence."""

    @abstractmethod
    async def analyze_dimensions(
        self, image: ImagePayload, context: ProductContext
    ) -> str:
        """Return the raw model text scoring the five dimensions."""
