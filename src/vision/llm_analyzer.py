# src/vision/llm_analyzer.py - v1
"""VisualAnalyzer backed by a vision LLM client.

Transport failures surface as TransientError from the adapter; an
unparseable answer raises InvalidResponseError.
"""

from __future__ import annotations

import logging
from typing import Any

from shelfscan.core.errors import InvalidResponseError
from shelfscan.core.models import ImagePayload, ProductContext, ProductIdentity
from shelfscan.core.parsing import ParsedErr, extract_json_object
from shelfscan.llm.base_client import BaseLLMClient
from shelfscan.vision.base_analyzer import ExtractedText, ProductGuess, VisualAnalyzer
from shelfscan.vision.prompts import (
    DIMENSION_PROMPT_TEMPLATE,
    EXTRACT_TEXT_PROMPT,
    IDENTIFY_PRODUCT_PROMPT,
    SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)


class LLMVisualAnalyzer(VisualAnalyzer):
    def __init__(self, client: BaseLLMClient, max_tokens: int = 2048) -> None:
        self._client = client
        self._max_tokens = max_tokens

    async def extract_text(self, image: ImagePayload) -> ExtractedText:
        data = await self._ask_json(EXTRACT_TEXT_PROMPT, image, temperature=0.1)
        extracted = ExtractedText(
            text=_str(data.get("text")) or "",
            product_name=_str(data.get("productName")),
            brand=_str(data.get("brandName")),
            size=_str(data.get("size")),
            category=_str(data.get("category")),
            keywords=[k for k in data.get("keywords") or [] if isinstance(k, str)][:10],
        )
        reported = _confidence(data.get("confidence"))
        extracted.confidence = reported if reported is not None else _extraction_quality(extracted)
        logger.info(
            "Extracted text: name=%r brand=%r (confidence %.2f)",
            extracted.product_name, extracted.brand, extracted.confidence,
        )
        return extracted

    async def identify_product(self, image: ImagePayload) -> ProductGuess:
        data = await self._ask_json(IDENTIFY_PRODUCT_PROMPT, image, temperature=0.2)
        name = _str(data.get("productName"))
        if not name:
            raise InvalidResponseError("Identification response has no productName")
        identity = ProductIdentity(
            name=name,
            brand=_str(data.get("brandName")) or "",
            category=_str(data.get("category")) or "Unknown",
            size=_str(data.get("size")),
            metadata={"keywords": data.get("keywords") or [], "source": "image_analysis"},
        )
        return ProductGuess(identity=identity, confidence=_confidence(data.get("confidence")) or 0.0)

    async def analyze_dimensions(
        self, image: ImagePayload, context: ProductContext
    ) -> str:
        prompt = DIMENSION_PROMPT_TEMPLATE.format(
            name=context.name, brand=context.brand or "Unknown", category=context.category,
        )
        response = await self._client.complete_with_vision(
            prompt, [image], system=SYSTEM_PROMPT,
            max_tokens=self._max_tokens, temperature=0.2,
        )
        return response.content

    async def _ask_json(
        self, prompt: str, image: ImagePayload, temperature: float
    ) -> dict[str, Any]:
        response = await self._client.complete_with_vision(
            prompt, [image], system=SYSTEM_PROMPT,
            max_tokens=self._max_tokens, temperature=temperature,
        )
        parsed = extract_json_object(response.content)
        if isinstance(parsed, ParsedErr):
            raise InvalidResponseError(f"Unparseable vision response: {parsed.reason}")
        return parsed.value


def _str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return min(1.0, max(0.0, float(value)))


def _extraction_quality(extracted: ExtractedText) -> float:
    """Fallback quality score when the model reports none."""
    if extracted.product_name and extracted.brand:
        return 0.9
    if extracted.product_name:
        return 0.7
    if extracted.brand:
        return 0.4
    return 0.1 if extracted.text or extracted.keywords else 0.0
