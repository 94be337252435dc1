"""Configuration types for the agent loop."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from agentcore.types.messages import AgentMessage, Message, Usage
from agentcore.types.models import ChatModel, StreamFn, ThinkingLevel
from agentcore.types.tools import PermissionFunc, Tool

if TYPE_CHECKING:
    from agentcore.core.cancel import RunContext


DEFAULT_MAX_TURNS = 10
DEFAULT_EVENT_BUFFER_SIZE = 128


class QueueMode(Enum):
    """How steering/follow-up queues are drained."""

    ALL = "all"  # deliver every queued message at once
    ONE_AT_A_TIME = "one-at-a-time"  # deliver the oldest only


TransformContextFn = Callable[["RunContext", list[AgentMessage]], Awaitable[list[AgentMessage]]]
ConvertToLLMFn = Callable[[list[AgentMessage]], list[Message]]
MessageSource = Callable[[], list[AgentMessage]]
ApiKeyResolver = Callable[[str], str | None]
# Returns (total tokens, tokens from reported usage, estimated trailing tokens).
ContextEstimateFn = Callable[[list[AgentMessage]], tuple[int, int, int]]


@dataclass(slots=True)
class AgentContext:
    """Working context for one loop invocation."""

    system_prompt: str = ""
    messages: list[AgentMessage] = field(default_factory=list)
    tools: list[Tool] = field(default_factory=list)


@dataclass(slots=True)
class LoopConfig:
    """Full parameterization of one loop invocation.

    Built fresh for every run and never mutated while the run is active.
    """

    model: ChatModel | None = None
    stream_fn: StreamFn | None = None  # None = call the model directly
    max_turns: int = DEFAULT_MAX_TURNS
    max_retries: int = 0  # retry limit for retryable model errors
    max_tool_errors: int = 0  # consecutive failures per tool, 0 = no breaker
    thinking_level: ThinkingLevel = ThinkingLevel.OFF
    thinking_budgets: dict[ThinkingLevel, int] = field(default_factory=dict)
    session_id: str | None = None
    get_api_key: ApiKeyResolver | None = None

    # Two-stage pipeline: transform_context -> convert_to_llm
    transform_context: TransformContextFn | None = None
    convert_to_llm: ConvertToLLMFn | None = None

    check_permission: PermissionFunc | None = None

    # Polled after each tool call and after each turn.
    get_steering_messages: MessageSource | None = None
    # Polled when the agent would otherwise stop.
    get_follow_up_messages: MessageSource | None = None

    event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE
    # None = drop events when the buffer is full; otherwise wait up to this
    # many seconds for space before dropping.
    event_send_timeout: float | None = None


@dataclass(frozen=True, slots=True)
class ContextUsage:
    """Estimated context window occupancy."""

    tokens: int
    context_window: int
    percent: float
    usage_tokens: int = 0
    trailing_tokens: int = 0


@dataclass(frozen=True, slots=True)
class AgentState:
    """Read-only snapshot of an agent, taken under its lock."""

    system_prompt: str
    messages: list[AgentMessage]
    tools: list[Tool]
    is_running: bool
    stream_message: AgentMessage | None
    pending_tool_calls: frozenset[str]
    total_usage: Usage
    error: str = ""
