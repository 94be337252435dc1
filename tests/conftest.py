"""Test fixtures including MockModel for deterministic testing."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import anyio
import pytest

from agentcore.core.cancel import RunContext
from agentcore.core.emitter import EventEmitter
from agentcore.providers.base import BaseChatModel, StreamAssembler
from agentcore.tools.base import ToolParam
from agentcore.tools.function import FuncTool
from agentcore.types.events import Event
from agentcore.types.messages import Message, StopReason, Usage
from agentcore.types.models import CallConfig, StreamEvent
from agentcore.types.tools import ToolSpec


@dataclass
class MockTurn:
    """A scripted turn for MockModel.

    Specify text, thinking and/or tool_calls for what the model should
    "respond" with, or ``error`` to make the stream fail.
    """

    text: str = ""
    thinking: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    # Each tool call: {"id": "tc1", "name": "echo", "args": {"text": "hi"}}
    usage: Usage | None = None
    stop_reason: StopReason | None = None
    error: BaseException | None = None


class MockModel(BaseChatModel):
    """A deterministic mock model for testing.

    Usage:
        model = MockModel(turns=[
            MockTurn(tool_calls=[{"id": "tc1", "name": "echo", "args": {"text": "hi"}}]),
            MockTurn(text="Done."),
        ])
    """

    def __init__(self, turns: list[MockTurn], model: str = "mock-model", provider: str = "mock"):
        super().__init__(model, provider)
        self._turns = list(turns)
        self.requests: list[tuple[list[Message], list[ToolSpec], CallConfig]] = []

    @property
    def remaining(self) -> int:
        return len(self._turns)

    async def stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig,
    ) -> AsyncIterator[StreamEvent]:
        self.requests.append((list(messages), list(tools), options))
        asm = StreamAssembler()
        if not self._turns:
            # No more turns: just end
            yield asm.done(StopReason.STOP)
            return

        turn = self._turns.pop(0)
        if turn.error is not None:
            raise turn.error

        if turn.thinking:
            yield asm.thinking_start()
            yield asm.thinking_delta(turn.thinking)
            yield asm.thinking_end()
        if turn.text:
            yield asm.text_start()
            yield asm.text_delta(turn.text)
            yield asm.text_end()
        for call in turn.tool_calls:
            yield asm.tool_call_start(call["id"], call["name"])
            yield asm.tool_call_delta(json.dumps(call.get("args", {})))
            yield asm.tool_call_end()

        yield asm.done(turn.stop_reason, turn.usage or Usage(input=100, output=50))


class InstantRunContext(RunContext):
    """RunContext whose sleeps return immediately and are recorded."""

    def __init__(self) -> None:
        super().__init__()
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> bool:
        self.sleeps.append(delay)
        return not self.cancelled


def echo_tool(name: str = "echo") -> FuncTool:
    """A tool that returns its ``text`` argument."""

    async def echo(text: str = "") -> str:
        return text

    return FuncTool(name, "Echo the input back.", echo, params=(
        ToolParam("text", "string", "Text to echo", required=False),
    ))


def failing_tool(name: str = "broken", message: str = "boom") -> FuncTool:
    """A tool that always raises."""

    def fail(**_: Any) -> str:
        raise RuntimeError(message)

    return FuncTool(name, "Always fails.", fail)


def types_of(events: list[Event]) -> list[str]:
    return [e.type.value for e in events]


@pytest.fixture
def run_ctx() -> InstantRunContext:
    return InstantRunContext()


def drain(emitter: EventEmitter) -> list[Event]:
    """Everything buffered on *emitter* so far, without waiting."""
    events: list[Event] = []
    while True:
        try:
            events.append(emitter.receive_stream.receive_nowait())
        except anyio.WouldBlock:
            return events
