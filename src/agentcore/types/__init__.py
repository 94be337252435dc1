"""Type definitions for agentcore."""

from agentcore.types.config import (
    AgentContext,
    AgentState,
    ContextUsage,
    LoopConfig,
    QueueMode,
)
from agentcore.types.events import (
    AgentEndEvent,
    AgentStartEvent,
    ErrorEvent,
    Event,
    EventType,
    MessageEndEvent,
    MessageStartEvent,
    MessageUpdateEvent,
    RetryEvent,
    RetryInfo,
    ToolExecEndEvent,
    ToolExecStartEvent,
    ToolExecUpdateEvent,
    TurnEndEvent,
    TurnStartEvent,
)
from agentcore.types.messages import (
    AgentMessage,
    ContentBlock,
    ImageBlock,
    Message,
    Role,
    StopReason,
    TextBlock,
    ThinkingBlock,
    ToolCall,
    ToolCallBlock,
    ToolResult,
    Usage,
)
from agentcore.types.models import (
    CallConfig,
    ChatModel,
    LLMRequest,
    LLMResponse,
    StreamEvent,
    StreamEventType,
    StreamFn,
    ThinkingLevel,
)
from agentcore.types.tools import PermissionFunc, Tool, ToolContext, ToolSpec

__all__ = [
    "AgentContext",
    "AgentEndEvent",
    "AgentMessage",
    "AgentStartEvent",
    "AgentState",
    "CallConfig",
    "ChatModel",
    "ContentBlock",
    "ContextUsage",
    "ErrorEvent",
    "Event",
    "EventType",
    "ImageBlock",
    "LLMRequest",
    "LLMResponse",
    "LoopConfig",
    "Message",
    "MessageEndEvent",
    "MessageStartEvent",
    "MessageUpdateEvent",
    "PermissionFunc",
    "QueueMode",
    "RetryEvent",
    "RetryInfo",
    "Role",
    "StopReason",
    "StreamEvent",
    "StreamEventType",
    "StreamFn",
    "TextBlock",
    "ThinkingBlock",
    "ThinkingLevel",
    "Tool",
    "ToolCall",
    "ToolCallBlock",
    "ToolContext",
    "ToolExecEndEvent",
    "ToolExecStartEvent",
    "ToolExecUpdateEvent",
    "ToolResult",
    "ToolSpec",
    "TurnEndEvent",
    "TurnStartEvent",
    "Usage",
]
