# tests/unit/llm/test_unit_llm.py - v1
"""Tests for llm/retry.py, llm/client_factory.py and the Anthropic adapter.

Provider SDKs are replaced with stand-ins in sys.modules; no network.
"""

from __future__ import annotations

import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from shelfscan.config.settings import ConfigurationError, Settings
from shelfscan.core.errors import InvalidResponseError, TransientError
from shelfscan.core.models import ImagePayload
from shelfscan.llm import client_factory
from shelfscan.llm.adapters.anthropic_adapter import AnthropicAdapter
from shelfscan.llm.adapters.openai_adapter import OpenAIAdapter
from shelfscan.llm.client_factory import UnsupportedProviderError, create_llm_client, register_provider
from shelfscan.llm.retry import (
    AI_CALL_POLICY,
    REPOSITORY_WRITE_POLICY,
    RetryExhausted,
    RetryPolicy,
    with_retry,
)

FAST = RetryPolicy(max_retries=2, base_delay_s=0.0)


class _Flaky:
    def __init__(self, failures: list[BaseException], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestRetryPolicy:
    def test_repository_delays(self):
        delays = [REPOSITORY_WRITE_POLICY.delay_for(i) for i in range(3)]
        assert delays == pytest.approx([0.1, 0.2, 0.4])

    def test_ai_attempts(self):
        assert AI_CALL_POLICY.max_attempts == 3

    def test_jitter_bounds(self):
        policy = RetryPolicy(max_retries=1, base_delay_s=1.0, jitter=True)
        for _ in range(20):
            assert 0.5 <= policy.delay_for(0) <= 1.5


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = _Flaky([])
        assert await with_retry(fn, policy=FAST) == "ok"
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_recovers_from_transient(self):
        fn = _Flaky([TransientError("busy"), ConnectionError("reset")])
        assert await with_retry(fn, policy=FAST) == "ok"
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        fn = _Flaky([TransientError("busy")] * 5)
        with pytest.raises(RetryExhausted) as exc_info:
            await with_retry(fn, operation="op", policy=FAST)
        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable is True
        assert "op" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        fn = _Flaky([InvalidResponseError("bad")])
        with pytest.raises(InvalidResponseError):
            await with_retry(fn, policy=FAST)
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_custom_should_retry(self):
        fn = _Flaky([ValueError("odd")])
        assert await with_retry(fn, policy=FAST, should_retry=lambda e: True) == "ok"

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        fn = _Flaky([TransientError("a"), TransientError("b")])
        policy = RetryPolicy(max_retries=2, base_delay_s=0.1)
        with patch("shelfscan.llm.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await with_retry(fn, policy=policy)
        assert [c.args[0] for c in sleep.await_args_list] == pytest.approx([0.1, 0.2])


class TestClientFactory:
    def test_anthropic(self):
        settings = Settings(_env_file=None, anthropic_api_key="k")
        client = create_llm_client("anthropic", "claude-test", settings)
        assert isinstance(client, AnthropicAdapter)
        assert client.provider_name == "anthropic"

    def test_openai(self):
        settings = Settings(_env_file=None, openai_api_key="k")
        client = create_llm_client("openai", "gpt-test", settings)
        assert isinstance(client, OpenAIAdapter)

    def test_unknown(self):
        with pytest.raises(UnsupportedProviderError, match="Available"):
            create_llm_client("nope", "m")

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="anthropic"):
            create_llm_client("anthropic", "m", Settings(_env_file=None))

    def test_explicit_key_skips_settings(self):
        client = create_llm_client("openai", "m", Settings(_env_file=None), api_key="direct")
        assert isinstance(client, OpenAIAdapter)

    def test_register_provider(self):
        with patch.dict(client_factory._PROVIDER_REGISTRY):
            register_provider("compat", "shelfscan.llm.adapters.openai_adapter.OpenAIAdapter")
            client = create_llm_client("compat", "local-model", api_key="k")
        assert isinstance(client, OpenAIAdapter)
        assert "compat" not in client_factory._PROVIDER_REGISTRY


class _SdkError(Exception):
    pass


def _fake_anthropic(create: AsyncMock):
    messages = SimpleNamespace(create=create)
    return SimpleNamespace(
        AsyncAnthropic=lambda api_key: SimpleNamespace(messages=messages),
        APIConnectionError=_SdkError,
        RateLimitError=_SdkError,
        InternalServerError=_SdkError,
    )


class TestAnthropicAdapter:
    @pytest.mark.asyncio
    async def test_builds_image_blocks(self):
        response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"a": 1}')],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
            model="claude-test",
        )
        create = AsyncMock(return_value=response)
        with patch.dict(sys.modules, {"anthropic": _fake_anthropic(create)}):
            adapter = AnthropicAdapter(model="claude-test", api_key="k")
            result = await adapter.complete_with_vision(
                "describe", [ImagePayload(data=b"img", media_type="image/png")], system="sys",
            )
        assert result.content == '{"a": 1}'
        assert result.input_tokens == 10
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "sys"
        image_block, text_block = kwargs["messages"][0]["content"]
        assert image_block["source"]["media_type"] == "image/png"
        assert text_block == {"type": "text", "text": "describe"}

    @pytest.mark.asyncio
    async def test_transport_errors_become_transient(self):
        create = AsyncMock(side_effect=_SdkError("overloaded"))
        with patch.dict(sys.modules, {"anthropic": _fake_anthropic(create)}):
            adapter = AnthropicAdapter(model="claude-test", api_key="k")
            with pytest.raises(TransientError):
                await adapter.complete_with_vision("p", [ImagePayload(data=b"img")])
