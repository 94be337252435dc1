"""Context pipeline helpers: provider conversion and tool-pair repair."""

from __future__ import annotations

from agentcore.types.messages import AgentMessage, Message, Role, tool_result_message

MISSING_RESULT_TEXT = "Tool result missing (conversation was truncated or interrupted)."


def default_convert_to_llm(messages: list[AgentMessage]) -> list[Message]:
    """Keep concrete :class:`Message` objects; drop application-defined types."""
    return [m for m in messages if isinstance(m, Message)]


def repair_message_sequence(messages: list[Message]) -> list[Message]:
    """Make every tool call / tool result pair complete.

    Strict providers reject histories where an assistant tool call has no
    result, or a tool result has no call. Both happen after truncation,
    compaction or an interrupted run. Unanswered calls get a synthetic
    error result inserted after the assistant message's existing results;
    results whose call appears nowhere are removed. Idempotent.
    """
    out: list[Message] = []
    i = 0
    while i < len(messages):
        msg = messages[i]
        out.append(msg)
        i += 1

        if msg.role is not Role.ASSISTANT:
            continue
        calls = msg.tool_calls()
        if not calls:
            continue

        # Keep the contiguous tool results that follow (first answer wins),
        # then fill the gaps.
        answered: set[str] = set()
        while i < len(messages) and messages[i].role is Role.TOOL:
            result = messages[i]
            i += 1
            if result.tool_call_id is not None:
                if result.tool_call_id in answered:
                    continue
                answered.add(result.tool_call_id)
            out.append(result)

        for call in calls:
            if call.id not in answered:
                out.append(tool_result_message(call.id, MISSING_RESULT_TEXT, is_error=True))

    call_ids = {call.id for m in out for call in m.tool_calls()}
    return [
        m for m in out
        if not (m.role is Role.TOOL and m.tool_call_id is not None and m.tool_call_id not in call_ids)
    ]
