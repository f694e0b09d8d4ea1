# src/llm/adapters/anthropic_adapter.py - v1
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK, imported lazily on first call.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from shelfscan.core.errors import TransientError
from shelfscan.core.models import ImagePayload
from shelfscan.llm.base_client import BaseLLMClient
from shelfscan.llm.models import LLMResponse

logger = logging.getLogger(__name__)


def _sdk():
    try:
        import anthropic
    except ImportError as e:
        raise ImportError(
            "anthropic package required: pip install anthropic"
        ) from e
    return anthropic


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            self.__client = _sdk().AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete_with_vision(
        self,
        prompt: str,
        images: list[ImagePayload],
        system: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Vision-enabled completion with images."""
        content_blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": img.media_type,
                    "data": img.as_base64(),
                },
            }
            for img in images
        ]
        content_blocks.append({"type": "text", "text": prompt})

        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": content_blocks}],
        }
        if system:
            params["system"] = system

        anthropic = _sdk()
        start = time.monotonic()
        try:
            response = await self._client.messages.create(**params)
        except (
            anthropic.APIConnectionError,
            anthropic.RateLimitError,
            anthropic.InternalServerError,
        ) as e:
            raise TransientError(f"Anthropic request failed: {e}") from e
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Extract text from Anthropic response content blocks."""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
