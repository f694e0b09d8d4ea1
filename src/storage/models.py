# src/storage/models.py - v1
"""Repository query and result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from shelfscan.core.models import ProductIdentity


class TextQuery(BaseModel):
    """Text extracted from packaging, used for fuzzy repository search."""

    product_name: str | None = None
    brand: str | None = None
    size: str | None = None
    keywords: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.product_name or self.brand or self.keywords)

    def as_text(self) -> str:
        parts = [self.brand, self.product_name, self.size, *self.keywords]
        return " ".join(p for p in parts if p)


class ProductMatch(BaseModel):
    identity: ProductIdentity
    score: float = Field(ge=0.0, le=1.0)
