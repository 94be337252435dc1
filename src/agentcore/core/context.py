"""Context window accounting: chars/4 estimates blended with reported usage."""

from __future__ import annotations

import json

from agentcore.types.messages import (
    AgentMessage,
    Message,
    Role,
    StopReason,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    Usage,
)


def estimate_tokens(msg: AgentMessage) -> int:
    """Rough token count for one message (ceil(chars / 4), at least 1).

    Only :class:`Message` content is counted; other message types are 0.
    """
    if not isinstance(msg, Message):
        return 0
    chars = 0
    for block in msg.content:
        match block:
            case TextBlock(text=text):
                chars += len(text)
            case ThinkingBlock(thinking=thinking):
                chars += len(thinking)
            case ToolCallBlock(tool_call=call):
                chars += len(call.name) + len(json.dumps(call.args))
    return max((chars + 3) // 4, 1)


def estimate_total(messages: list[AgentMessage]) -> int:
    return sum(estimate_tokens(m) for m in messages)


def _usage_tokens(usage: Usage) -> int:
    if usage.total_tokens > 0:
        return usage.total_tokens
    return usage.input + usage.output + usage.cache_read + usage.cache_write


def estimate_context_tokens(messages: list[AgentMessage]) -> tuple[int, int, int]:
    """Estimate context occupancy as ``(tokens, usage_tokens, trailing_tokens)``.

    Uses the usage reported on the last successful assistant message and
    adds chars/4 estimates for everything after it. Without reported usage
    the whole history is estimated.
    """
    for index in range(len(messages) - 1, -1, -1):
        msg = messages[index]
        if not isinstance(msg, Message) or msg.role is not Role.ASSISTANT:
            continue
        if msg.stop_reason in (StopReason.ERROR, StopReason.ABORTED):
            continue
        if msg.usage is not None:
            usage_tokens = _usage_tokens(msg.usage)
            trailing = estimate_total(messages[index + 1:])
            return usage_tokens + trailing, usage_tokens, trailing

    total = estimate_total(messages)
    return total, 0, total
