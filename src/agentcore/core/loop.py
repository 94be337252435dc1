"""The core agent loop: model call, tool execution, steering and follow-up."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from agentcore.core.cancel import RunContext
from agentcore.core.emitter import EventEmitter
from agentcore.core.llm import call_llm_with_retry
from agentcore.core.stream import EventStream, RunOutcome
from agentcore.core.tools import execute_tool_calls
from agentcore.errors import AgentError, LLMCallError, MaxTurnsError, RunCancelledError
from agentcore.observability.tracing import span
from agentcore.types.config import DEFAULT_MAX_TURNS, AgentContext, LoopConfig
from agentcore.types.events import (
    AgentEndEvent,
    AgentStartEvent,
    MessageEndEvent,
    MessageStartEvent,
    TurnEndEvent,
    TurnStartEvent,
)
from agentcore.types.messages import AgentMessage, StopReason, ToolResult, tool_result_message

logger = logging.getLogger(__name__)


def _spawn(
    config: LoopConfig,
    body: Callable[[EventEmitter], Awaitable[RunOutcome]],
) -> EventStream:
    emitter = EventEmitter(config.event_buffer_size, config.event_send_timeout)

    async def drive() -> RunOutcome:
        try:
            return await body(emitter)
        finally:
            await emitter.aclose()

    return EventStream(emitter.receive_stream, asyncio.create_task(drive()))


def agent_loop(
    run_ctx: RunContext,
    prompts: list[AgentMessage],
    agent_ctx: AgentContext,
    config: LoopConfig,
) -> EventStream:
    """Start a run with new prompt messages on a background task.

    Must be called with an event loop running. Returns immediately.
    """
    async def body(emitter: EventEmitter) -> RunOutcome:
        new_messages = list(prompts)
        current = AgentContext(
            system_prompt=agent_ctx.system_prompt,
            messages=[*agent_ctx.messages, *prompts],
            tools=list(agent_ctx.tools),
        )
        await emitter.emit(AgentStartEvent())
        await emitter.emit(TurnStartEvent())
        for prompt in prompts:
            await emitter.emit(MessageStartEvent(message=prompt))
            await emitter.emit(MessageEndEvent(message=prompt))
        return await run_loop(run_ctx, current, new_messages, config, emitter)

    return _spawn(config, body)


def agent_loop_continue(
    run_ctx: RunContext,
    agent_ctx: AgentContext,
    config: LoopConfig,
) -> EventStream:
    """Resume from the existing context without adding messages.

    The last message should be one the model can answer (user or tool
    result once converted).
    """
    async def body(emitter: EventEmitter) -> RunOutcome:
        if not agent_ctx.messages:
            error = AgentError("cannot continue: no messages in context")
            await emitter.emit_error(error)
            return [], error
        current = AgentContext(
            system_prompt=agent_ctx.system_prompt,
            messages=list(agent_ctx.messages),
            tools=list(agent_ctx.tools),
        )
        await emitter.emit(AgentStartEvent())
        await emitter.emit(TurnStartEvent())
        return await run_loop(run_ctx, current, [], config, emitter)

    return _spawn(config, body)


async def _append(
    message: AgentMessage,
    current: AgentContext,
    new_messages: list[AgentMessage],
    emitter: EventEmitter,
) -> None:
    await emitter.emit(MessageStartEvent(message=message))
    await emitter.emit(MessageEndEvent(message=message))
    current.messages.append(message)
    new_messages.append(message)


async def run_loop(
    run_ctx: RunContext,
    current: AgentContext,
    new_messages: list[AgentMessage],
    config: LoopConfig,
    emitter: EventEmitter,
) -> RunOutcome:
    """Drive turns until the model stops and no follow-up is queued.

    The inner loop runs while the model keeps requesting tools or messages
    are waiting to be injected; the outer loop restarts it when follow-up
    messages arrive after the agent would otherwise stop. The agent_start
    and first turn_start events are the caller's.
    """
    max_turns = config.max_turns if config.max_turns > 0 else DEFAULT_MAX_TURNS
    first_turn = True
    turn_count = 0
    error_counts: dict[str, int] = {}

    pending: list[AgentMessage] = []
    if config.get_steering_messages is not None:
        pending = config.get_steering_messages()

    while True:
        has_tool_calls = True

        while has_tool_calls or pending:
            if run_ctx.cancelled:
                error = run_ctx.error or RunCancelledError()
                logger.debug("Run cancelled after %d turns", turn_count)
                await emitter.emit_error(error, new_messages)
                return new_messages, error

            if turn_count >= max_turns:
                error = MaxTurnsError(max_turns)
                await emitter.emit_error(error, new_messages)
                return new_messages, error

            if first_turn:
                first_turn = False
            else:
                await emitter.emit(TurnStartEvent())

            with span("agentcore.turn", {"turn": turn_count + 1}):
                logger.debug("Turn %d started", turn_count + 1)

                for message in pending:
                    await _append(message, current, new_messages, emitter)
                pending = []

                try:
                    assistant = await call_llm_with_retry(run_ctx, current, config, emitter)
                except Exception as exc:
                    if run_ctx.cancelled and exc is run_ctx.error:
                        error = exc
                    else:
                        error = LLMCallError(f"llm call failed: {exc}")
                        error.__cause__ = exc
                    logger.debug("Model call failed: %s", exc)
                    await emitter.emit_error(error, new_messages)
                    return new_messages, error

                current.messages.append(assistant)
                new_messages.append(assistant)

                if assistant.stop_reason in (StopReason.ERROR, StopReason.ABORTED):
                    await emitter.emit(TurnEndEvent(message=assistant))
                    await emitter.emit(AgentEndEvent(new_messages=list(new_messages)))
                    return new_messages, None

                calls = assistant.tool_calls()
                has_tool_calls = bool(calls)

                results: list[ToolResult] = []
                steering: list[AgentMessage] = []
                if has_tool_calls:
                    results, steering = await execute_tool_calls(
                        run_ctx, current.tools, calls, config, emitter, error_counts,
                    )
                    for result in results:
                        message = tool_result_message(
                            result.tool_call_id, result.content, is_error=result.is_error,
                        )
                        await _append(message, current, new_messages, emitter)

                await emitter.emit(TurnEndEvent(message=assistant, tool_results=results))
                turn_count += 1
                logger.debug("Turn %d ended with %d tool results", turn_count, len(results))

            if steering:
                pending = steering
            elif config.get_steering_messages is not None:
                pending = config.get_steering_messages()

        if config.get_follow_up_messages is not None:
            follow_up = config.get_follow_up_messages()
            if follow_up:
                pending = follow_up
                continue
        break

    await emitter.emit(AgentEndEvent(new_messages=list(new_messages)))
    return new_messages, None
