"""Base chat model with shared stream assembly and the retry classifier."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import replace
from typing import Any

from agentcore.types.messages import (
    ContentBlock,
    Message,
    Role,
    StopReason,
    TextBlock,
    ThinkingBlock,
    ToolCall,
    ToolCallBlock,
    Usage,
)
from agentcore.types.models import (
    CallConfig,
    LLMResponse,
    StreamEvent,
    StreamEventType,
)
from agentcore.types.tools import ToolSpec

logger = logging.getLogger(__name__)

# Transient failures: timeouts, rate limits and server overload.
_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504, 529})
_RETRYABLE_NAMES: frozenset[str] = frozenset({
    "RateLimitError",
    "OverloadedError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
    "ServiceUnavailableError",
})


def is_retryable_error(exc: BaseException) -> bool:
    """Return True when *exc* represents a transient error worth retrying.

    An explicit ``retryable`` attribute wins. Otherwise the exception type
    name (anthropic/openai SDK style), an HTTP ``status_code`` attribute, or
    a builtin connection/timeout error marks the error as transient.
    """
    explicit = getattr(exc, "retryable", None)
    if isinstance(explicit, bool):
        return explicit
    if type(exc).__name__ in _RETRYABLE_NAMES:
        return True
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and status_code in _RETRYABLE_STATUS_CODES:
        return True
    return isinstance(exc, (ConnectionError, TimeoutError))


# Lower-cased fragments of provider errors for requests that exceed the
# context window (OpenAI, Anthropic, Gemini and common proxies).
_CONTEXT_OVERFLOW_PHRASES: tuple[str, ...] = (
    "maximum context length",
    "context length exceeded",
    "context window",
    "token limit",
    "too many tokens",
    "max_tokens",
    "maximum number of tokens",
    "input is too long",
    "prompt is too long",
    "request too large",
    "content too large",
    "exceeds the model",
    "reduce the length",
    "reduce your prompt",
)


def is_context_overflow(exc: BaseException | None) -> bool:
    """Return True when *exc*, or an exception it was raised from, reports a
    context window overflow.

    Callers use this to compact or truncate history instead of retrying.
    """
    seen: set[int] = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current).lower()
        if any(phrase in message for phrase in _CONTEXT_OVERFLOW_PHRASES):
            return True
        current = current.__cause__ or current.__context__
    return False


def get_retry_after(exc: BaseException) -> float:
    """Provider-supplied retry-after hint in seconds, or 0 when absent.

    Reads a ``retry_after`` attribute, then a ``Retry-After`` header on an
    attached ``response`` (httpx style, as the vendor SDKs expose it).
    """
    value: Any = getattr(exc, "retry_after", None)
    if value is None:
        response = getattr(exc, "response", None)
        headers = getattr(response, "headers", None)
        if headers is not None:
            try:
                value = headers.get("retry-after")
            except AttributeError:
                value = None
    if value is None:
        return 0.0
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(seconds, 0.0)


class StreamAssembler:
    """Builds partial assistant messages for fine-grained stream events.

    Adapters feed provider chunks in and get :class:`StreamEvent` objects
    back, each carrying a snapshot of the message assembled so far. Tool
    call arguments are accumulated as raw JSON and parsed when the call
    block ends.
    """

    def __init__(self) -> None:
        self._blocks: list[ContentBlock] = []
        self._args_json: dict[int, str] = {}
        self._open: dict[StreamEventType, int] = {}

    def _snapshot(self, **kwargs: Any) -> Message:
        return Message(role=Role.ASSISTANT, content=tuple(self._blocks), **kwargs)

    def _event(self, kind: StreamEventType, index: int, delta: str = "") -> StreamEvent:
        return StreamEvent(type=kind, message=self._snapshot(), content_index=index, delta=delta)

    # -- text / thinking ---------------------------------------------------

    def text_start(self) -> StreamEvent:
        self._blocks.append(TextBlock(""))
        index = len(self._blocks) - 1
        self._open[StreamEventType.TEXT_START] = index
        return self._event(StreamEventType.TEXT_START, index)

    def text_delta(self, delta: str) -> StreamEvent:
        index = self._open.get(StreamEventType.TEXT_START)
        if index is None:
            self.text_start()
            index = self._open[StreamEventType.TEXT_START]
        block = self._blocks[index]
        assert isinstance(block, TextBlock)
        self._blocks[index] = TextBlock(block.text + delta)
        return self._event(StreamEventType.TEXT_DELTA, index, delta)

    def text_end(self) -> StreamEvent:
        index = self._open.pop(StreamEventType.TEXT_START, len(self._blocks) - 1)
        return self._event(StreamEventType.TEXT_END, index)

    def thinking_start(self) -> StreamEvent:
        self._blocks.append(ThinkingBlock(""))
        index = len(self._blocks) - 1
        self._open[StreamEventType.THINKING_START] = index
        return self._event(StreamEventType.THINKING_START, index)

    def thinking_delta(self, delta: str) -> StreamEvent:
        index = self._open.get(StreamEventType.THINKING_START)
        if index is None:
            self.thinking_start()
            index = self._open[StreamEventType.THINKING_START]
        block = self._blocks[index]
        assert isinstance(block, ThinkingBlock)
        self._blocks[index] = ThinkingBlock(block.thinking + delta)
        return self._event(StreamEventType.THINKING_DELTA, index, delta)

    def thinking_end(self) -> StreamEvent:
        index = self._open.pop(StreamEventType.THINKING_START, len(self._blocks) - 1)
        return self._event(StreamEventType.THINKING_END, index)

    # -- tool calls --------------------------------------------------------

    def tool_call_start(self, tool_call_id: str, name: str) -> StreamEvent:
        self._blocks.append(ToolCallBlock(ToolCall(id=tool_call_id, name=name)))
        index = len(self._blocks) - 1
        self._open[StreamEventType.TOOLCALL_START] = index
        self._args_json[index] = ""
        return self._event(StreamEventType.TOOLCALL_START, index)

    def tool_call_delta(self, delta: str) -> StreamEvent:
        index = self._open.get(StreamEventType.TOOLCALL_START, -1)
        if index >= 0:
            self._args_json[index] += delta
        return self._event(StreamEventType.TOOLCALL_DELTA, index, delta)

    def tool_call_end(self) -> StreamEvent:
        index = self._open.pop(StreamEventType.TOOLCALL_START, -1)
        if index >= 0:
            self._finish_tool_call(index)
        return self._event(StreamEventType.TOOLCALL_END, index)

    def _finish_tool_call(self, index: int) -> None:
        raw = self._args_json.pop(index, "")
        try:
            args = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            logger.debug("Discarding malformed tool arguments: %r", raw[:200])
            args = {}
        if not isinstance(args, dict):
            args = {"value": args}
        block = self._blocks[index]
        assert isinstance(block, ToolCallBlock)
        self._blocks[index] = ToolCallBlock(replace(block.tool_call, args=args))

    # -- terminal ----------------------------------------------------------

    def done(
        self,
        stop_reason: StopReason | None = None,
        usage: Usage | None = None,
    ) -> StreamEvent:
        for index in list(self._args_json):
            self._finish_tool_call(index)
        self._open.clear()
        if stop_reason is None:
            has_calls = any(isinstance(b, ToolCallBlock) for b in self._blocks)
            stop_reason = StopReason.TOOL_USE if has_calls else StopReason.STOP
        final = self._snapshot(stop_reason=stop_reason, usage=usage)
        return StreamEvent(type=StreamEventType.DONE, message=final, stop_reason=stop_reason)

    @staticmethod
    def error(exc: BaseException) -> StreamEvent:
        return StreamEvent(type=StreamEventType.ERROR, error=exc)


class BaseChatModel(ABC):
    """Abstract base class for chat model adapters.

    Sub-classes implement :meth:`stream`, an async generator of
    :class:`StreamEvent`. ``generate`` and ``generate_stream`` are derived
    from it.

    Parameters
    ----------
    model:
        The model identifier string.
    provider:
        Provider name, exposed for per-provider API key resolution.
    """

    def __init__(self, model: str, provider: str = "") -> None:
        self._model = model
        self._provider = provider

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def provider_name(self) -> str:
        return self._provider

    def supports_tools(self) -> bool:
        return True

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig,
    ) -> AsyncIterator[StreamEvent]:
        """Yield stream events for one completion."""
        ...

    async def generate_stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        return self.stream(messages, tools, options or CallConfig())

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig | None = None,
    ) -> LLMResponse:
        """Collect the full streamed response."""
        final: Message | None = None
        partial = Message(role=Role.ASSISTANT)
        async for event in self.stream(messages, tools, options or CallConfig()):
            if event.type is StreamEventType.ERROR:
                raise event.error or RuntimeError("stream error")
            partial = event.message
            if event.type is StreamEventType.DONE:
                final = event.message
        return LLMResponse(message=final if final is not None else partial)
