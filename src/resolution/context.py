# src/resolution/context.py - v1
"""Per-request state shared between tiers of one resolution."""

from __future__ import annotations

from dataclasses import dataclass

from shelfscan.cache.fingerprint import image_fingerprint, normalize_barcode
from shelfscan.core.models import ImagePayload, ResolutionRequest
from shelfscan.vision.base_analyzer import ExtractedText


@dataclass
class ResolutionContext:
    """Owned by exactly one resolution; never shared across sessions."""

    request: ResolutionRequest
    barcode: str | None = None
    image: ImagePayload | None = None
    image_key: str | None = None
    # Set by tier 2 for tier 3 to search with
    extracted: ExtractedText | None = None
    # Tier 1 proved the barcode is in neither cache nor repository
    barcode_absent: bool = False
    # Id of the identity tier 3 already wrote to the repository
    persisted_identity_id: str | None = None

    @classmethod
    def from_request(cls, request: ResolutionRequest) -> ResolutionContext:
        """Normalize the barcode and fingerprint the image.

        Raises:
            InvalidResponseError: If the barcode normalizes to nothing.
        """
        barcode = normalize_barcode(request.barcode) if request.barcode else None
        image_key = image_fingerprint(request.image) if request.image is not None else None
        return cls(request=request, barcode=barcode, image=request.image, image_key=image_key)

    @property
    def cache_keys(self) -> list[str]:
        """Identity-cache keys for this request, barcode first."""
        return [k for k in (self.barcode, self.image_key) if k]
