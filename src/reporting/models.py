# src/reporting/models.py - v1
"""User-submitted misidentification reports."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from shelfscan.core.models import ImagePayload, ProductIdentity, Tier
from shelfscan.vision.base_analyzer import ProductGuess


class MisidentificationReport(BaseModel):
    """A caller says the product resolved for a scan is wrong."""

    report_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str
    session_id: str
    incorrect_product: ProductIdentity
    barcode: str | None = None
    image: ImagePayload | None = None
    image_key: str | None = None
    feedback: str | None = None
    tier: Tier = 4
    reported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ErrorReportOutcome(BaseModel):
    success: bool
    report_id: str
    invalidated_keys: list[str] = Field(default_factory=list)
    dimensions_invalidated: bool = False
    flagged: bool = False
    alternative: ProductGuess | None = None
    message: str
