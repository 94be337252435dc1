"""ChatModel that forwards calls to a remote proxy server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from agentcore.providers.base import BaseChatModel, StreamAssembler
from agentcore.types.messages import Message, StopReason, Usage
from agentcore.types.models import CallConfig, LLMRequest, StreamEvent
from agentcore.types.tools import ToolSpec


class ProxyEventType(Enum):
    TEXT_DELTA = "text_delta"
    THINKING_DELTA = "thinking_delta"
    TOOLCALL_START = "toolcall_start"
    TOOLCALL_DELTA = "toolcall_delta"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ProxyEvent:
    """A bandwidth-optimized event: deltas only, never the full message."""

    type: ProxyEventType
    delta: str = ""
    tool_call_id: str = ""
    tool_name: str = ""
    stop_reason: StopReason | None = None
    usage: Usage | None = None
    error: BaseException | None = None


ProxyStreamFn = Callable[[LLMRequest, CallConfig], Awaitable[AsyncIterator[ProxyEvent]]]


class ProxyModel(BaseChatModel):
    """Rebuilds standard stream events from a proxy's delta-only events.

    Usage::

        model = ProxyModel(my_proxy_fn)
        agent = Agent(model=model)
    """

    def __init__(self, stream_fn: ProxyStreamFn, model: str = "proxy", provider: str = "proxy") -> None:
        super().__init__(model, provider)
        self._stream_fn = stream_fn

    async def generate_stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        # Open the proxy here so connection errors surface during setup.
        source = await self._stream_fn(LLMRequest(messages=messages, tools=tools), options or CallConfig())
        return self._translate(source)

    async def stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig,
    ) -> AsyncIterator[StreamEvent]:
        source = await self._stream_fn(LLMRequest(messages=messages, tools=tools), options)
        async for event in self._translate(source):
            yield event

    async def _translate(self, source: AsyncIterator[ProxyEvent]) -> AsyncIterator[StreamEvent]:
        asm = StreamAssembler()
        text_started = False
        thinking_started = False
        tool_open = False

        async for ev in source:
            match ev.type:
                case ProxyEventType.TEXT_DELTA:
                    if not text_started:
                        text_started = True
                        yield asm.text_start()
                    yield asm.text_delta(ev.delta)
                case ProxyEventType.THINKING_DELTA:
                    if not thinking_started:
                        thinking_started = True
                        yield asm.thinking_start()
                    yield asm.thinking_delta(ev.delta)
                case ProxyEventType.TOOLCALL_START:
                    if tool_open:
                        yield asm.tool_call_end()
                    tool_open = True
                    yield asm.tool_call_start(ev.tool_call_id, ev.tool_name)
                case ProxyEventType.TOOLCALL_DELTA:
                    yield asm.tool_call_delta(ev.delta)
                case ProxyEventType.DONE:
                    yield asm.done(ev.stop_reason, ev.usage)
                    return
                case ProxyEventType.ERROR:
                    yield asm.error(ev.error or RuntimeError("proxy stream error"))
                    return
