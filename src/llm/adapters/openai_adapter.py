# src/llm/adapters/openai_adapter.py - v1
"""OpenAI GPT adapter implementing BaseLLMClient.

Uses the official openai SDK; images are sent as data URIs.
"""

from __future__ import annotations

import time
from typing import Any

from shelfscan.core.errors import TransientError
from shelfscan.core.models import ImagePayload
from shelfscan.llm.base_client import BaseLLMClient
from shelfscan.llm.models import LLMResponse


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT adapter."""

    def __init__(self, model: str = "gpt-4o", api_key: str = "") -> None:
        self._model = model
        self._api_key = api_key

    async def complete_with_vision(
        self,
        prompt: str,
        images: list[ImagePayload],
        system: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.2,
    ) -> LLMResponse:
        import openai

        client = openai.AsyncOpenAI(api_key=self._api_key)
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})

        content: list[dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": img.as_data_uri()}}
            for img in images
        ]
        content.append({"type": "text", "text": prompt})
        oai_messages.append({"role": "user", "content": content})

        t0 = time.monotonic()
        try:
            resp = await client.chat.completions.create(
                model=self._model,
                messages=oai_messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except (
            openai.APIConnectionError,
            openai.RateLimitError,
            openai.InternalServerError,
        ) as e:
            raise TransientError(f"OpenAI request failed: {e}") from e
        latency = int((time.monotonic() - t0) * 1000)

        usage = resp.usage
        return LLMResponse(
            content=resp.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=resp.model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"
