"""Tests for agentcore.core.llm: context pipeline, streaming and retry."""

from __future__ import annotations

import pytest

from agentcore.core.emitter import EventEmitter
from agentcore.core.llm import MAX_RETRY_DELAY, call_llm, call_llm_with_retry, retry_delay
from agentcore.errors import (
    ModelNotConfiguredError,
    ProviderError,
    RunCancelledError,
    TransformContextError,
)
from agentcore.providers.base import BaseChatModel, StreamAssembler
from agentcore.types.config import AgentContext, LoopConfig
from agentcore.types.events import ErrorEvent, MessageEndEvent, MessageUpdateEvent, RetryEvent
from agentcore.types.messages import (
    Role,
    ToolCall,
    assistant_message,
    user_message,
)
from agentcore.types.models import LLMResponse, ThinkingLevel
from tests.conftest import MockModel, MockTurn, drain, echo_tool, types_of


def _ctx(*messages, system_prompt: str = "", tools=None) -> AgentContext:
    return AgentContext(
        system_prompt=system_prompt,
        messages=list(messages) or [user_message("hi")],
        tools=list(tools or []),
    )


class TestRetryDelay:
    def test_exponential_from_one_second(self) -> None:
        delays = [retry_delay(ValueError(), attempt) for attempt in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_capped(self) -> None:
        assert retry_delay(ValueError(), 5) == MAX_RETRY_DELAY
        assert retry_delay(ValueError(), 20) == MAX_RETRY_DELAY

    def test_retry_after_hint_wins(self) -> None:
        assert retry_delay(ProviderError("x", retry_after=5), 0) == 5
        assert retry_delay(ProviderError("x", retry_after=5), 4) == 5

    def test_retry_after_hint_capped(self) -> None:
        assert retry_delay(ProviderError("x", retry_after=120), 0) == MAX_RETRY_DELAY

    def test_zero_hint_falls_back(self) -> None:
        assert retry_delay(ProviderError("x", retry_after=0), 2) == 4.0


class TestCallLLM:
    @pytest.mark.asyncio
    async def test_stream_decomposition(self, run_ctx) -> None:
        model = MockModel([MockTurn(text="hello", thinking="hmm")])
        emitter = EventEmitter()

        final = await call_llm(run_ctx, _ctx(), LoopConfig(model=model), emitter)

        events = drain(emitter)
        assert types_of(events) == [
            "message_start", "message_update", "message_update", "message_end",
        ]
        assert [e.delta for e in events if isinstance(e, MessageUpdateEvent)] == ["hmm", "hello"]
        assert final.text_content() == "hello"
        assert final.thinking_content() == "hmm"
        assert isinstance(events[-1], MessageEndEvent)
        assert events[-1].message == final

    @pytest.mark.asyncio
    async def test_tool_call_stream(self, run_ctx) -> None:
        model = MockModel([
            MockTurn(tool_calls=[{"id": "c1", "name": "echo", "args": {"text": "x"}}]),
        ])
        final = await call_llm(
            run_ctx, _ctx(tools=[echo_tool()]), LoopConfig(model=model), EventEmitter(),
        )
        assert final.tool_calls() == [ToolCall(id="c1", name="echo", args={"text": "x"})]
        _, tools, _ = model.requests[0]
        assert [t.name for t in tools] == ["echo"]

    @pytest.mark.asyncio
    async def test_setup_failure_falls_back_to_generate(self, run_ctx) -> None:
        class NoStream(MockModel):
            async def generate_stream(self, messages, tools, options=None):
                raise ConnectionError("streaming unavailable")

        emitter = EventEmitter()
        final = await call_llm(
            run_ctx, _ctx(), LoopConfig(model=NoStream([MockTurn(text="blocking")])), emitter,
        )
        assert final.text_content() == "blocking"
        assert types_of(drain(emitter)) == ["message_start", "message_end"]

    @pytest.mark.asyncio
    async def test_stream_closed_after_done(self, run_ctx) -> None:
        class TrailingStream(BaseChatModel):
            closed = False

            async def stream(self, messages, tools, options):
                asm = StreamAssembler()
                try:
                    yield asm.text_start()
                    yield asm.text_delta("ok")
                    yield asm.done()
                    yield asm.text_delta("never read")
                finally:
                    TrailingStream.closed = True

        final = await call_llm(
            run_ctx, _ctx(), LoopConfig(model=TrailingStream("trailing")), EventEmitter(),
        )
        assert final.text_content() == "ok"
        assert TrailingStream.closed

    @pytest.mark.asyncio
    async def test_system_prompt_and_repair(self, run_ctx) -> None:
        model = MockModel([MockTurn(text="ok")])
        history = _ctx(
            user_message("go"),
            assistant_message(tool_calls=[ToolCall(id="c1", name="echo")]),
            user_message("where is the result?"),
            system_prompt="Be brief.",
        )
        await call_llm(run_ctx, history, LoopConfig(model=model), EventEmitter())

        sent, _, _ = model.requests[0]
        assert sent[0].role is Role.SYSTEM
        assert sent[0].text_content() == "Be brief."
        assert [m.role for m in sent[1:]] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.USER]
        assert sent[3].tool_call_id == "c1"

    @pytest.mark.asyncio
    async def test_transform_context(self, run_ctx) -> None:
        model = MockModel([MockTurn(text="ok")])

        async def keep_last(ctx, messages):
            return messages[-1:]

        history = _ctx(user_message("old"), assistant_message("a"), user_message("new"))
        await call_llm(
            run_ctx, history, LoopConfig(model=model, transform_context=keep_last), EventEmitter(),
        )
        sent, _, _ = model.requests[0]
        assert [m.text_content() for m in sent] == ["new"]

    @pytest.mark.asyncio
    async def test_transform_failure(self, run_ctx) -> None:
        async def explode(ctx, messages):
            raise ValueError("bad window")

        config = LoopConfig(model=MockModel([]), transform_context=explode)
        with pytest.raises(TransformContextError, match="transform context: bad window"):
            await call_llm(run_ctx, _ctx(), config, EventEmitter())

    @pytest.mark.asyncio
    async def test_stream_fn_bypasses_model(self, run_ctx) -> None:
        seen = []

        async def stream_fn(ctx, request):
            seen.append(request)
            return LLMResponse(message=assistant_message("from proxy"))

        emitter = EventEmitter()
        final = await call_llm(
            run_ctx, _ctx(tools=[echo_tool()]), LoopConfig(stream_fn=stream_fn), emitter,
        )
        assert final.text_content() == "from proxy"
        assert [t.name for t in seen[0].tools] == ["echo"]
        assert types_of(drain(emitter)) == ["message_start", "message_end"]

    @pytest.mark.asyncio
    async def test_no_model(self, run_ctx) -> None:
        with pytest.raises(ModelNotConfiguredError):
            await call_llm(run_ctx, _ctx(), LoopConfig(), EventEmitter())

    @pytest.mark.asyncio
    async def test_call_options(self, run_ctx) -> None:
        model = MockModel([MockTurn(text="ok")], provider="acme")
        config = LoopConfig(
            model=model,
            thinking_level=ThinkingLevel.HIGH,
            thinking_budgets={ThinkingLevel.HIGH: 2048},
            session_id="s-1",
            get_api_key=lambda provider: f"key-for-{provider}",
        )
        await call_llm(run_ctx, _ctx(), config, EventEmitter())

        _, _, options = model.requests[0]
        assert options.thinking_level is ThinkingLevel.HIGH
        assert options.thinking_budget == 2048
        assert options.api_key == "key-for-acme"
        assert options.session_id == "s-1"

    @pytest.mark.asyncio
    async def test_thinking_off_sends_no_level(self, run_ctx) -> None:
        model = MockModel([MockTurn(text="ok")])
        await call_llm(run_ctx, _ctx(), LoopConfig(model=model), EventEmitter())
        _, _, options = model.requests[0]
        assert options.thinking_level is None
        assert options.api_key is None


class TestCallLLMWithRetry:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, run_ctx) -> None:
        model = MockModel([
            MockTurn(error=ProviderError("overloaded", status_code=529)),
            MockTurn(error=ProviderError("flaky", retryable=True)),
            MockTurn(text="finally"),
        ])
        emitter = EventEmitter()
        config = LoopConfig(model=model, max_retries=3)

        final = await call_llm_with_retry(run_ctx, _ctx(), config, emitter)

        assert final.text_content() == "finally"
        assert run_ctx.sleeps == [1.0, 2.0]
        events = drain(emitter)
        retries = [e.info for e in events if isinstance(e, RetryEvent)]
        assert [(r.attempt, r.max_retries, r.delay) for r in retries] == [(1, 3, 1.0), (2, 3, 2.0)]
        assert not any(isinstance(e, ErrorEvent) for e in events)

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, run_ctx) -> None:
        model = MockModel([MockTurn(error=ProviderError("bad request", status_code=400))])
        with pytest.raises(ProviderError, match="bad request"):
            await call_llm_with_retry(
                run_ctx, _ctx(), LoopConfig(model=model, max_retries=3), EventEmitter(),
            )
        assert run_ctx.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausted(self, run_ctx) -> None:
        model = MockModel([MockTurn(error=ProviderError("busy", status_code=503)) for _ in range(3)])
        with pytest.raises(ProviderError):
            await call_llm_with_retry(
                run_ctx, _ctx(), LoopConfig(model=model, max_retries=2), EventEmitter(),
            )
        assert run_ctx.sleeps == [1.0, 2.0]
        assert model.remaining == 0

    @pytest.mark.asyncio
    async def test_zero_retries_is_single_attempt(self, run_ctx) -> None:
        model = MockModel([
            MockTurn(error=ProviderError("busy", status_code=503)),
            MockTurn(text="never reached"),
        ])
        with pytest.raises(ProviderError):
            await call_llm_with_retry(run_ctx, _ctx(), LoopConfig(model=model), EventEmitter())
        assert model.remaining == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, run_ctx) -> None:
        model = MockModel([MockTurn(error=ProviderError("busy", status_code=503))])

        class CancellingEmitter(EventEmitter):
            async def emit(self, event):
                await super().emit(event)
                if isinstance(event, RetryEvent):
                    run_ctx.cancel()

        with pytest.raises(RunCancelledError):
            await call_llm_with_retry(
                run_ctx, _ctx(), LoopConfig(model=model, max_retries=3), CancellingEmitter(),
            )
