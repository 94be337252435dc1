"""agentcore: an agent execution loop for LLM-driven tools.

Usage:
    import agentcore

    agent = agentcore.Agent(model, system_prompt="Be brief.", tools=[clock])
    agent.subscribe(lambda event: print(event.type.value))
    new_messages, error = await agent.run("What time is it?")

    # Or, one-shot:
    async for event in agentcore.run("What time is it?", model=model):
        match event:
            case agentcore.MessageUpdateEvent(delta=d):
                print(d, end="")
            case agentcore.AgentEndEvent(new_messages=msgs):
                print(f"Done: {len(msgs)} messages")
"""

from agentcore.core.agent import Agent
from agentcore.core.cancel import RunContext
from agentcore.core.config import AgentSettings, load_settings, resolve_api_key
from agentcore.core.context import estimate_context_tokens
from agentcore.core.engine import run
from agentcore.core.loop import agent_loop, agent_loop_continue
from agentcore.core.repair import default_convert_to_llm, repair_message_sequence
from agentcore.core.stream import EventStream, collect
from agentcore.errors import (
    AgentBusyError,
    AgentError,
    LLMCallError,
    MaxTurnsError,
    ModelNotConfiguredError,
    PermissionDeniedError,
    ProviderError,
    RunCancelledError,
    TransformContextError,
)
from agentcore.types.config import AgentContext, AgentState, ContextUsage, LoopConfig, QueueMode
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
    Message,
    Role,
    StopReason,
    ToolCall,
    ToolResult,
    Usage,
    assistant_message,
    system_message,
    tool_result_message,
    user_message,
)
from agentcore.types.models import CallConfig, ChatModel, StreamEvent, StreamEventType, ThinkingLevel
from agentcore.types.tools import Tool, ToolContext

__version__ = "0.1.0"

__all__ = [
    # Core API
    "Agent",
    "EventStream",
    "RunContext",
    "agent_loop",
    "agent_loop_continue",
    "collect",
    "default_convert_to_llm",
    "estimate_context_tokens",
    "repair_message_sequence",
    "run",
    # Configuration
    "AgentContext",
    "AgentSettings",
    "AgentState",
    "CallConfig",
    "ContextUsage",
    "LoopConfig",
    "QueueMode",
    "ThinkingLevel",
    "load_settings",
    "resolve_api_key",
    # Messages
    "AgentMessage",
    "Message",
    "Role",
    "StopReason",
    "ToolCall",
    "ToolResult",
    "Usage",
    "assistant_message",
    "system_message",
    "tool_result_message",
    "user_message",
    # Events
    "AgentEndEvent",
    "AgentStartEvent",
    "ErrorEvent",
    "Event",
    "EventType",
    "MessageEndEvent",
    "MessageStartEvent",
    "MessageUpdateEvent",
    "RetryEvent",
    "RetryInfo",
    "ToolExecEndEvent",
    "ToolExecStartEvent",
    "ToolExecUpdateEvent",
    "TurnEndEvent",
    "TurnStartEvent",
    # Interfaces
    "ChatModel",
    "StreamEvent",
    "StreamEventType",
    "Tool",
    "ToolContext",
    # Errors
    "AgentBusyError",
    "AgentError",
    "LLMCallError",
    "MaxTurnsError",
    "ModelNotConfiguredError",
    "PermissionDeniedError",
    "ProviderError",
    "RunCancelledError",
    "TransformContextError",
]
