"""Tests for agentcore.providers.base: retry classifier and stream assembly."""

from __future__ import annotations

import pytest

from agentcore.errors import ProviderError
from agentcore.providers.base import (
    StreamAssembler,
    get_retry_after,
    is_context_overflow,
    is_retryable_error,
)
from agentcore.types.messages import StopReason, Usage
from agentcore.types.models import StreamEventType
from tests.conftest import MockModel, MockTurn


class RateLimitError(Exception):
    pass


class _Response:
    def __init__(self, headers: dict[str, str]) -> None:
        self.headers = headers


class TestRetryClassifier:
    def test_explicit_flag_wins(self) -> None:
        assert is_retryable_error(ProviderError("x", retryable=True))
        assert not is_retryable_error(ProviderError("x", status_code=429, retryable=False))

    def test_status_codes(self) -> None:
        assert is_retryable_error(ProviderError("x", status_code=429))
        assert is_retryable_error(ProviderError("x", status_code=529))
        assert is_retryable_error(ProviderError("x", status_code=503))
        assert not is_retryable_error(ProviderError("x", status_code=400))
        assert not is_retryable_error(ProviderError("x", status_code=401))

    def test_sdk_error_names(self) -> None:
        assert is_retryable_error(RateLimitError("slow down"))

    def test_builtin_transient_errors(self) -> None:
        assert is_retryable_error(ConnectionResetError())
        assert is_retryable_error(TimeoutError())
        assert not is_retryable_error(ValueError("bad input"))

    def test_retry_after_attribute(self) -> None:
        assert get_retry_after(ProviderError("x", retry_after=4.5)) == 4.5

    def test_retry_after_header(self) -> None:
        exc = Exception("limited")
        exc.response = _Response({"retry-after": "7"})  # type: ignore[attr-defined]
        assert get_retry_after(exc) == 7.0

    def test_retry_after_missing_or_garbage(self) -> None:
        assert get_retry_after(ValueError()) == 0.0
        exc = Exception()
        exc.response = _Response({"retry-after": "Wed, 21 Oct 2015"})  # type: ignore[attr-defined]
        assert get_retry_after(exc) == 0.0


class TestContextOverflow:
    def test_direct_match(self) -> None:
        exc = ProviderError("This model's Maximum Context Length is 128000 tokens", status_code=400)
        assert is_context_overflow(exc)

    def test_match_on_chained_cause(self) -> None:
        try:
            try:
                raise ValueError("prompt is too long: 210000 tokens > 200000 maximum")
            except ValueError as inner:
                raise RuntimeError("request failed") from inner
        except RuntimeError as outer:
            assert is_context_overflow(outer)

    def test_match_on_implicit_context(self) -> None:
        try:
            try:
                raise ValueError("Request too large for gpt-4o")
            except ValueError:
                raise KeyError("while handling")
        except KeyError as outer:
            assert is_context_overflow(outer)

    def test_no_match(self) -> None:
        assert not is_context_overflow(ProviderError("rate limited", status_code=429))
        assert not is_context_overflow(None)

    def test_cause_cycle_terminates(self) -> None:
        first = ValueError("first")
        second = ValueError("second")
        first.__cause__ = second
        second.__cause__ = first
        assert not is_context_overflow(first)


class TestStreamAssembler:
    def test_text_and_tool_call(self) -> None:
        asm = StreamAssembler()
        asm.text_start()
        ev = asm.text_delta("Hel")
        assert ev.message.text_content() == "Hel"
        ev = asm.text_delta("lo")
        assert ev.delta == "lo"
        assert ev.message.text_content() == "Hello"
        asm.text_end()

        asm.tool_call_start("c1", "calc")
        asm.tool_call_delta('{"a": ')
        asm.tool_call_delta("1}")
        end = asm.tool_call_end()
        assert end.message.tool_calls()[0].args == {"a": 1}

        done = asm.done(usage=Usage(input=3))
        assert done.type is StreamEventType.DONE
        assert done.stop_reason is StopReason.TOOL_USE
        assert done.message.usage == Usage(input=3)

    def test_malformed_arguments_become_empty(self) -> None:
        asm = StreamAssembler()
        asm.tool_call_start("c1", "calc")
        asm.tool_call_delta("{not json")
        done = asm.done()
        assert done.message.tool_calls()[0].args == {}

    def test_delta_without_start_opens_block(self) -> None:
        asm = StreamAssembler()
        ev = asm.thinking_delta("hmm")
        assert ev.message.thinking_content() == "hmm"
        assert asm.done().stop_reason is StopReason.STOP


class TestBaseChatModel:
    @pytest.mark.asyncio
    async def test_generate_collects_stream(self) -> None:
        model = MockModel([MockTurn(text="hi", thinking="think")])
        response = await model.generate([], [])
        assert response.message.text_content() == "hi"
        assert response.message.thinking_content() == "think"
        assert response.message.stop_reason is StopReason.STOP

    @pytest.mark.asyncio
    async def test_generate_raises_stream_errors(self) -> None:
        model = MockModel([MockTurn(error=ProviderError("down", status_code=503))])
        with pytest.raises(ProviderError):
            await model.generate([], [])

    def test_provider_name(self) -> None:
        assert MockModel([], provider="acme").provider_name == "acme"
