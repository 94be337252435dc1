"""Message and content types for the agent loop."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable


def _now() -> datetime:
    return datetime.now(UTC)


class Role(Enum):
    """Conversation roles."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class StopReason(Enum):
    """Why the model stopped generating."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "toolUse"
    ERROR = "error"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of executing one tool call."""

    tool_call_id: str
    content: str = ""
    is_error: bool = False
    details: Any = None  # optional payload for UI display/logging


@dataclass(frozen=True, slots=True)
class TextBlock:
    text: str


@dataclass(frozen=True, slots=True)
class ThinkingBlock:
    thinking: str


@dataclass(frozen=True, slots=True)
class ToolCallBlock:
    tool_call: ToolCall


@dataclass(frozen=True, slots=True)
class ImageBlock:
    """Base64-encoded image content."""

    data: str
    mime_type: str


ContentBlock = TextBlock | ThinkingBlock | ToolCallBlock | ImageBlock


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Usage:
    """Token consumption for one model call (or a running total).

    ``input`` counts prompt tokens, ``output`` completion tokens,
    ``cache_read``/``cache_write`` prompt-cache traffic and ``total_tokens``
    the provider-reported total.
    """

    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total_tokens: int = 0

    def add(self, other: Usage | None) -> None:
        """Accumulate *other* into this usage, field by field."""
        if other is None:
            return
        self.input += other.input
        self.output += other.output
        self.cache_read += other.cache_read
        self.cache_write += other.cache_write
        self.total_tokens += other.total_tokens

    def copy(self) -> Usage:
        return replace(self)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@runtime_checkable
class AgentMessage(Protocol):
    """Anything that can live in an agent's history.

    :class:`Message` is the built-in implementation. Applications may add
    their own types (status notes, UI hints); those flow through the
    context pipeline but are dropped before the model is called.
    """

    @property
    def role(self) -> Role: ...

    @property
    def timestamp(self) -> datetime: ...

    def text_content(self) -> str: ...

    def thinking_content(self) -> str: ...

    def has_tool_calls(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class Message:
    """A model-level message made of ordered content blocks."""

    role: Role
    content: tuple[ContentBlock, ...] = ()
    stop_reason: StopReason | None = None
    usage: Usage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    def text_content(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def thinking_content(self) -> str:
        return "".join(b.thinking for b in self.content if isinstance(b, ThinkingBlock))

    def tool_calls(self) -> list[ToolCall]:
        return [b.tool_call for b in self.content if isinstance(b, ToolCallBlock)]

    def has_tool_calls(self) -> bool:
        return any(isinstance(b, ToolCallBlock) for b in self.content)

    def is_empty(self) -> bool:
        return len(self.content) == 0

    @property
    def tool_call_id(self) -> str | None:
        """The call this message answers, for tool-role messages."""
        value = self.metadata.get("tool_call_id")
        return value if isinstance(value, str) else None


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def user_message(text: str) -> Message:
    return Message(role=Role.USER, content=(TextBlock(text),))


def system_message(text: str) -> Message:
    return Message(role=Role.SYSTEM, content=(TextBlock(text),))


def assistant_message(
    text: str = "",
    tool_calls: list[ToolCall] | None = None,
    *,
    stop_reason: StopReason | None = None,
    usage: Usage | None = None,
) -> Message:
    """Build an assistant message from text and/or tool calls."""
    blocks: list[ContentBlock] = []
    if text:
        blocks.append(TextBlock(text))
    for call in tool_calls or ():
        blocks.append(ToolCallBlock(call))
    if stop_reason is None:
        stop_reason = StopReason.TOOL_USE if tool_calls else StopReason.STOP
    return Message(
        role=Role.ASSISTANT,
        content=tuple(blocks),
        stop_reason=stop_reason,
        usage=usage,
    )


def tool_result_message(tool_call_id: str, content: str, is_error: bool = False) -> Message:
    return Message(
        role=Role.TOOL,
        content=(TextBlock(content),),
        metadata={"tool_call_id": tool_call_id, "is_error": is_error},
    )


def collect_messages(msgs: list[Any]) -> list[Message]:
    """Keep only concrete :class:`Message` objects, dropping custom types."""
    return [m for m in msgs if isinstance(m, Message)]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _block_to_dict(block: ContentBlock) -> dict[str, Any]:
    match block:
        case TextBlock(text=text):
            return {"type": "text", "text": text}
        case ThinkingBlock(thinking=thinking):
            return {"type": "thinking", "thinking": thinking}
        case ToolCallBlock(tool_call=call):
            return {
                "type": "toolCall",
                "tool_call": {"id": call.id, "name": call.name, "args": call.args},
            }
        case ImageBlock(data=data, mime_type=mime_type):
            return {"type": "image", "image": {"data": data, "mime_type": mime_type}}
    raise TypeError(f"unknown content block: {block!r}")


def _block_from_dict(data: dict[str, Any]) -> ContentBlock:
    kind = data.get("type")
    if kind == "text":
        return TextBlock(data.get("text", ""))
    if kind == "thinking":
        return ThinkingBlock(data.get("thinking", ""))
    if kind == "toolCall":
        tc = data.get("tool_call") or {}
        return ToolCallBlock(ToolCall(
            id=tc.get("id", ""), name=tc.get("name", ""), args=tc.get("args") or {},
        ))
    if kind == "image":
        img = data.get("image") or {}
        return ImageBlock(data=img.get("data", ""), mime_type=img.get("mime_type", ""))
    raise ValueError(f"unknown content block type: {kind!r}")


def message_to_dict(msg: Message) -> dict[str, Any]:
    """Render a message as a JSON-safe dict."""
    out: dict[str, Any] = {
        "role": msg.role.value,
        "content": [_block_to_dict(b) for b in msg.content],
        "timestamp": msg.timestamp.isoformat(),
    }
    if msg.stop_reason is not None:
        out["stop_reason"] = msg.stop_reason.value
    if msg.usage is not None:
        out["usage"] = {
            "input": msg.usage.input,
            "output": msg.usage.output,
            "cache_read": msg.usage.cache_read,
            "cache_write": msg.usage.cache_write,
            "total_tokens": msg.usage.total_tokens,
        }
    if msg.metadata:
        out["metadata"] = dict(msg.metadata)
    return out


def message_from_dict(data: dict[str, Any]) -> Message:
    """Inverse of :func:`message_to_dict`."""
    usage = data.get("usage")
    stop = data.get("stop_reason")
    ts = data.get("timestamp")
    return Message(
        role=Role(data["role"]),
        content=tuple(_block_from_dict(b) for b in data.get("content", [])),
        stop_reason=StopReason(stop) if stop else None,
        usage=Usage(**usage) if usage else None,
        metadata=dict(data.get("metadata") or {}),
        timestamp=datetime.fromisoformat(ts) if ts else _now(),
    )
