"""Lifecycle events emitted by the agent loop.

Events are the loop's only output channel. Each class carries a ``type``
tag so consumers can filter without ``isinstance`` checks::

    async for event in stream:
        match event:
            case MessageUpdateEvent(delta=d):
                print(d, end="")
            case AgentEndEvent(new_messages=msgs):
                ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from agentcore.types.messages import AgentMessage, ToolResult


class EventType(Enum):
    AGENT_START = "agent_start"
    AGENT_END = "agent_end"
    TURN_START = "turn_start"
    TURN_END = "turn_end"
    MESSAGE_START = "message_start"
    MESSAGE_UPDATE = "message_update"
    MESSAGE_END = "message_end"
    TOOL_EXEC_START = "tool_exec_start"
    TOOL_EXEC_UPDATE = "tool_exec_update"
    TOOL_EXEC_END = "tool_exec_end"
    RETRY = "retry"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class RetryInfo:
    """Context for a retry: 1-based attempt number and chosen delay (seconds)."""

    attempt: int
    max_retries: int
    delay: float
    error: BaseException


@dataclass(frozen=True, slots=True)
class AgentStartEvent:
    type: ClassVar[EventType] = EventType.AGENT_START


@dataclass(frozen=True, slots=True)
class AgentEndEvent:
    """Terminates the stream; carries every message appended during the run."""

    type: ClassVar[EventType] = EventType.AGENT_END

    new_messages: list[AgentMessage] = field(default_factory=list)
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class TurnStartEvent:
    type: ClassVar[EventType] = EventType.TURN_START


@dataclass(frozen=True, slots=True)
class TurnEndEvent:
    type: ClassVar[EventType] = EventType.TURN_END

    message: AgentMessage
    tool_results: list[ToolResult] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MessageStartEvent:
    type: ClassVar[EventType] = EventType.MESSAGE_START

    message: AgentMessage


@dataclass(frozen=True, slots=True)
class MessageUpdateEvent:
    type: ClassVar[EventType] = EventType.MESSAGE_UPDATE

    message: AgentMessage
    delta: str = ""


@dataclass(frozen=True, slots=True)
class MessageEndEvent:
    type: ClassVar[EventType] = EventType.MESSAGE_END

    message: AgentMessage


@dataclass(frozen=True, slots=True)
class ToolExecStartEvent:
    type: ClassVar[EventType] = EventType.TOOL_EXEC_START

    tool_call_id: str
    tool_name: str
    label: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolExecUpdateEvent:
    type: ClassVar[EventType] = EventType.TOOL_EXEC_UPDATE

    tool_call_id: str
    tool_name: str
    label: str = ""
    args: dict[str, Any] = field(default_factory=dict)
    partial_result: Any = None


@dataclass(frozen=True, slots=True)
class ToolExecEndEvent:
    type: ClassVar[EventType] = EventType.TOOL_EXEC_END

    tool_call_id: str
    tool_name: str
    label: str = ""
    result: str = ""
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class RetryEvent:
    type: ClassVar[EventType] = EventType.RETRY

    info: RetryInfo


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    type: ClassVar[EventType] = EventType.ERROR

    error: BaseException


Event = (
    AgentStartEvent
    | AgentEndEvent
    | TurnStartEvent
    | TurnEndEvent
    | MessageStartEvent
    | MessageUpdateEvent
    | MessageEndEvent
    | ToolExecStartEvent
    | ToolExecUpdateEvent
    | ToolExecEndEvent
    | RetryEvent
    | ErrorEvent
)
