# src/discovery/barcode_lookup.py - v1
"""Barcode Lookup API backend for web discovery.

Searches by product name, brand and size, drops candidates whose barcode
fails format validation, and ranks the rest:

    confidence = base (0.5 unless the API reports one)
               + name Jaccard x 0.3
               + brand Jaccard x 0.2        (capped at 1.0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from shelfscan.core.errors import InvalidResponseError, TransientError
from shelfscan.core.similarity import jaccard_similarity
from shelfscan.discovery.base_search import DiscoveredBarcode, DiscoveryQuery, WebDiscoverySearch
from shelfscan.discovery.validation import infer_format, is_valid_barcode

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.barcodelookup.com/v3"
PRODUCT_PAGE_URL = "https://www.barcodelookup.com/{barcode}"
BASE_CONFIDENCE = 0.5


class BarcodeLookupSearch(WebDiscoverySearch):

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 8.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    async def find_barcode(self, query: DiscoveryQuery) -> DiscoveredBarcode | None:
        terms = query.search_terms()
        if not terms:
            return None

        raw_products = await self._fetch(terms)
        candidates = [
            c for c in (self._parse_product(raw, query) for raw in raw_products)
            if c is not None
        ]
        if not candidates:
            logger.info("Discovery found no valid barcode for %r", terms)
            return None

        best = max(candidates, key=lambda c: c.confidence)
        logger.info(
            "Discovery picked %s for %r (confidence %.2f of %d candidates)",
            best.barcode, terms, best.confidence, len(candidates),
        )
        return best

    async def _fetch(self, terms: str) -> list[dict[str, Any]]:
        """Single HTTP call to the products endpoint."""
        params = {"search": terms, "formatted": "y", "key": self._api_key}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    f"{self._base_url}/products",
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self._timeout_s),
                ) as resp:
                    if resp.status == 404:
                        return []
                    if resp.status == 429 or resp.status >= 500:
                        raise TransientError(f"Barcode Lookup unavailable (HTTP {resp.status})")
                    if resp.status != 200:
                        text = await resp.text()
                        raise InvalidResponseError(
                            f"Barcode Lookup error {resp.status}: {text[:200]}"
                        )
                    data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientError(f"Barcode Lookup request failed: {e}") from e

        if not isinstance(data, dict):
            raise InvalidResponseError("Barcode Lookup returned a non-object payload")
        return [p for p in data.get("products") or [] if isinstance(p, dict)]

    def _parse_product(
        self, raw: dict[str, Any], query: DiscoveryQuery
    ) -> DiscoveredBarcode | None:
        barcode = str(raw.get("barcode_number") or raw.get("barcode") or "").strip()
        declared = raw.get("format")
        barcode_format = declared if isinstance(declared, str) and declared else infer_format(barcode)
        if not is_valid_barcode(barcode, barcode_format):
            logger.debug("Skipping invalid barcode %r (%s)", barcode, barcode_format)
            return None

        name = raw.get("title") or raw.get("product_name")
        brand = raw.get("brand")
        base = raw.get("confidence")
        confidence = base if isinstance(base, (int, float)) and not isinstance(base, bool) else BASE_CONFIDENCE
        if query.product_name and name:
            confidence += jaccard_similarity(query.product_name, name) * 0.3
        if query.brand and brand:
            confidence += jaccard_similarity(query.brand, brand) * 0.2

        return DiscoveredBarcode(
            barcode=barcode,
            source_url=PRODUCT_PAGE_URL.format(barcode=barcode),
            confidence=max(0.0, min(1.0, float(confidence))),
            barcode_format=barcode_format,
            product_name=name or None,
            brand=brand or None,
            category=raw.get("category") or None,
        )
