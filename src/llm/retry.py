# src/llm/retry.py - v1
"""Bounded retry with exponential backoff.

Only errors accepted by `should_retry` (transient ones by default) are
retried; anything else is re-raised unchanged on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from shelfscan.core.errors import TransientError, is_transient

logger = logging.getLogger(__name__)


class RetryExhausted(TransientError):
    """All retries exhausted for a transient failure."""

    default_code = "RETRY_EXHAUSTED"

    def __init__(self, operation: str, attempts: int, last_error: BaseException):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{operation}' failed after {attempts} attempts: {last_error}"
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget. max_retries counts retries, not attempts."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = False

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """Delay before the given retry (0-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** retry)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


# Repository writes: 100ms, 200ms, 400ms.
REPOSITORY_WRITE_POLICY = RetryPolicy(max_retries=3, base_delay_s=0.1)
# AI calls: 3 attempts in total.
AI_CALL_POLICY = RetryPolicy(max_retries=2, base_delay_s=0.5, jitter=True)


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "unknown",
    policy: RetryPolicy = REPOSITORY_WRITE_POLICY,
    should_retry: Callable[[BaseException], bool] = is_transient,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        RetryExhausted: If a retryable error persists past the budget.
        Exception: Any non-retryable error, unchanged.
    """
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            attempts += 1
            if not should_retry(e):
                raise
            if attempts > policy.max_retries:
                raise RetryExhausted(operation, attempts, e) from e

            delay = policy.delay_for(attempts - 1)
            logger.warning(
                "'%s' failed (attempt %d/%d): %s; retrying in %.2fs",
                operation, attempts, policy.max_attempts, e, delay,
            )
            await asyncio.sleep(delay)
