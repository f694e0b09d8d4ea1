# src/llm/base_client.py - v1
"""Abstract vision LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shelfscan.core.models import ImagePayload
from shelfscan.llm.models import LLMResponse


class BaseLLMClient(ABC):
    """Unified interface for vision-capable LLM providers.

    Adapters raise TransientError for network, rate-limit and server
    failures so the retry layer can tell them from bad requests.
    """

    @abstractmethod
    async def complete_with_vision(
        self,
        prompt: str,
        images: list[ImagePayload],
        system: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Vision-enabled completion (images + text)."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai)."""
