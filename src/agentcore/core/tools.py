"""Tool execution engine: sequential calls with permission checks and a circuit breaker."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any

from agentcore.core.cancel import RunContext
from agentcore.core.emitter import EventEmitter
from agentcore.errors import RunCancelledError
from agentcore.observability.metrics import record_tool_call
from agentcore.observability.tracing import mark_error, span
from agentcore.types.config import LoopConfig
from agentcore.types.events import ToolExecEndEvent, ToolExecStartEvent, ToolExecUpdateEvent
from agentcore.types.messages import AgentMessage, ToolCall, ToolResult
from agentcore.types.tools import Tool, ToolContext, ToolLabeler, ToolSpec

logger = logging.getLogger(__name__)

SKIPPED_TEXT = "Skipped due to queued user message."


def find_tool(tools: list[Tool], name: str) -> Tool | None:
    for tool in tools:
        if tool.name == name:
            return tool
    return None


def tool_label(tool: Tool | None, fallback: str) -> str:
    """Human-readable label for *tool*, or *fallback* when it has none."""
    if tool is not None and isinstance(tool, ToolLabeler):
        label = tool.label
        if label:
            return label
    return fallback


def build_tool_specs(tools: list[Tool]) -> list[ToolSpec]:
    return [ToolSpec(name=t.name, description=t.description, parameters=t.schema) for t in tools]


def encode_result(value: Any) -> str:
    """Tool return value as model-facing text: strings as-is, the rest as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def skip_tool_call(
    call: ToolCall,
    tools: list[Tool],
    emitter: EventEmitter,
) -> ToolResult:
    """Answer *call* without running it, because the user steered the run."""
    label = tool_label(find_tool(tools, call.name), call.name)
    await emitter.emit(ToolExecStartEvent(
        tool_call_id=call.id, tool_name=call.name, label=label, args=call.args,
    ))
    result = ToolResult(tool_call_id=call.id, content=SKIPPED_TEXT, is_error=True)
    await emitter.emit(ToolExecEndEvent(
        tool_call_id=call.id, tool_name=call.name, label=label,
        result=result.content, is_error=True,
    ))
    return result


async def _check_permission(run_ctx: RunContext, call: ToolCall, config: LoopConfig) -> str | None:
    """Run the permission hook. Returns the denial reason, or None if allowed."""
    if config.check_permission is None:
        return None
    try:
        outcome = config.check_permission(run_ctx, call)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as exc:
        logger.debug("Permission denied for %s: %s", call.name, exc)
        return _error_text(exc)
    return None


async def _run_tool(
    run_ctx: RunContext,
    tool: Tool,
    call: ToolCall,
    label: str,
    emitter: EventEmitter,
) -> ToolResult:
    async def report(partial: Any) -> None:
        await emitter.emit(ToolExecUpdateEvent(
            tool_call_id=call.id, tool_name=call.name, label=label,
            args=call.args, partial_result=partial,
        ))

    ctx = ToolContext(run=run_ctx, tool_call_id=call.id, tool_name=call.name, reporter=report)
    with span("agentcore.tool", {"tool": call.name, "tool_call_id": call.id}) as s:
        try:
            value = await run_ctx.guard(tool.execute(call.args, ctx))
        except Exception as exc:
            mark_error(s, exc)
            return ToolResult(tool_call_id=call.id, content=_error_text(exc), is_error=True)
    return ToolResult(tool_call_id=call.id, content=encode_result(value))


async def execute_tool_calls(
    run_ctx: RunContext,
    tools: list[Tool],
    calls: list[ToolCall],
    config: LoopConfig,
    emitter: EventEmitter,
    error_counts: dict[str, int],
) -> tuple[list[ToolResult], list[AgentMessage]]:
    """Execute *calls* one at a time, in the order the model issued them.

    Returns one result per call plus any steering messages that
    interrupted the batch. ``error_counts`` holds the consecutive failure
    count per tool name and persists across turns of one run.
    """
    results: list[ToolResult] = []

    for index, call in enumerate(calls):
        tool = find_tool(tools, call.name)
        label = tool_label(tool, call.name)

        limit = config.max_tool_errors
        if limit > 0 and error_counts.get(call.name, 0) >= limit:
            await emitter.emit(ToolExecStartEvent(
                tool_call_id=call.id, tool_name=call.name, label=label, args=call.args,
            ))
            result = ToolResult(
                tool_call_id=call.id,
                content=f'tool "{call.name}" disabled after {limit} consecutive errors',
                is_error=True,
            )
            await emitter.emit(ToolExecEndEvent(
                tool_call_id=call.id, tool_name=call.name, label=label,
                result=result.content, is_error=True,
            ))
            results.append(result)
            continue

        await emitter.emit(ToolExecStartEvent(
            tool_call_id=call.id, tool_name=call.name, label=label, args=call.args,
        ))

        counted = True
        if run_ctx.cancelled:
            reason = _error_text(run_ctx.error or RunCancelledError())
            result = ToolResult(tool_call_id=call.id, content=reason, is_error=True)
        elif (denial := await _check_permission(run_ctx, call, config)) is not None:
            result = ToolResult(tool_call_id=call.id, content=denial, is_error=True)
            counted = False
        elif tool is None:
            result = ToolResult(
                tool_call_id=call.id, content=f'tool "{call.name}" not found', is_error=True,
            )
        else:
            logger.debug("Executing tool %s (%s)", call.name, call.id)
            result = await _run_tool(run_ctx, tool, call, label, emitter)
            record_tool_call(call.name, is_error=result.is_error)

        await emitter.emit(ToolExecEndEvent(
            tool_call_id=call.id, tool_name=call.name, label=label,
            result=result.content, is_error=result.is_error,
        ))
        results.append(result)

        if counted:
            if result.is_error:
                error_counts[call.name] = error_counts.get(call.name, 0) + 1
            else:
                error_counts[call.name] = 0

        if config.get_steering_messages is not None:
            steering = config.get_steering_messages()
            if steering:
                for rest in calls[index + 1:]:
                    results.append(await skip_tool_call(rest, tools, emitter))
                return results, steering

    return results, []
