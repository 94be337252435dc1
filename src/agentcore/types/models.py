"""Chat model protocol and stream event types."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from agentcore.types.messages import Message, Role, StopReason
from agentcore.types.tools import ToolSpec

if TYPE_CHECKING:
    from agentcore.core.cancel import RunContext


class ThinkingLevel(Enum):
    """Reasoning depth for models that support it."""

    OFF = "off"
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"


@dataclass(frozen=True, slots=True)
class CallConfig:
    """Per-call options resolved by the loop for one model request."""

    thinking_level: ThinkingLevel | None = None
    thinking_budget: int = 0  # max thinking tokens, 0 = provider default
    api_key: str | None = None  # None = model default key
    session_id: str | None = None


class StreamEventType(Enum):
    """Fine-grained streaming events produced by a chat model."""

    TEXT_START = "text_start"
    TEXT_DELTA = "text_delta"
    TEXT_END = "text_end"
    THINKING_START = "thinking_start"
    THINKING_DELTA = "thinking_delta"
    THINKING_END = "thinking_end"
    TOOLCALL_START = "toolcall_start"
    TOOLCALL_DELTA = "toolcall_delta"
    TOOLCALL_END = "toolcall_end"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """A single event from a streaming model response.

    ``message`` holds the partial message assembled so far (or the final
    message for ``DONE``).
    """

    type: StreamEventType
    message: Message = field(default_factory=lambda: Message(role=Role.ASSISTANT))
    content_index: int = 0
    delta: str = ""
    stop_reason: StopReason | None = None
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class LLMRequest:
    messages: list[Message]
    tools: list[ToolSpec] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LLMResponse:
    message: Message


@runtime_checkable
class ChatModel(Protocol):
    """Protocol that all chat model adapters must implement."""

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig | None = None,
    ) -> LLMResponse:
        """Blocking (non-streaming) completion."""
        ...

    async def generate_stream(
        self,
        messages: list[Message],
        tools: list[ToolSpec],
        options: CallConfig | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Open a streaming completion.

        Awaiting performs request setup (errors here trigger the blocking
        fallback); iterating the returned object yields :class:`StreamEvent`.
        """
        ...

    def supports_tools(self) -> bool: ...


@runtime_checkable
class ProviderNamer(Protocol):
    """Optional: models that expose their provider name (e.g. ``"openai"``)."""

    @property
    def provider_name(self) -> str: ...


# Injectable model call (mock, proxy, tests). Bypasses ChatModel entirely.
StreamFn = Callable[["RunContext", LLMRequest], Awaitable[LLMResponse]]
