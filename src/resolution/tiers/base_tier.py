# src/resolution/tiers/base_tier.py - v1
"""Abstract resolution tier."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from shelfscan.core.models import ResolutionResult, Tier
from shelfscan.resolution.context import ResolutionContext


class ResolutionTier(ABC):
    """One resolution strategy.

    attempt() returns a result, returns None when it has no answer,
    raises NotFoundError when the identity is provably absent, and lets
    transient errors propagate. Whether to fall through is the
    orchestrator's decision.
    """

    tier: ClassVar[Tier]
    description: ClassVar[str]
    # The orchestrator accepts a terminal tier's answer at any confidence
    terminal: ClassVar[bool] = False

    @abstractmethod
    def applies(self, ctx: ResolutionContext) -> bool:
        """Whether the request carries what this tier needs."""

    @abstractmethod
    async def attempt(self, ctx: ResolutionContext) -> ResolutionResult | None:
        """Try to resolve the request."""
