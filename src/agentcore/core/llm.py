"""LLM call layer: context pipeline, streaming decomposition and retry."""

from __future__ import annotations

import logging
from contextlib import aclosing, nullcontext
from dataclasses import replace
from datetime import UTC, datetime

from agentcore.core.cancel import RunContext
from agentcore.core.emitter import EventEmitter
from agentcore.core.repair import default_convert_to_llm, repair_message_sequence
from agentcore.core.tools import build_tool_specs
from agentcore.errors import LLMCallError, ModelNotConfiguredError, TransformContextError
from agentcore.observability.metrics import record_retry, record_tokens, timed_operation
from agentcore.observability.tracing import mark_error, span
from agentcore.providers.base import get_retry_after, is_retryable_error
from agentcore.types.config import AgentContext, LoopConfig
from agentcore.types.events import (
    MessageEndEvent,
    MessageStartEvent,
    MessageUpdateEvent,
    RetryEvent,
    RetryInfo,
)
from agentcore.types.messages import Message, Role, system_message
from agentcore.types.models import (
    CallConfig,
    ChatModel,
    LLMRequest,
    ProviderNamer,
    StreamEventType,
    ThinkingLevel,
)
from agentcore.types.tools import ToolSpec

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY = 30.0

_OPEN_OR_DELTA = {
    StreamEventType.TEXT_START,
    StreamEventType.TEXT_DELTA,
    StreamEventType.THINKING_START,
    StreamEventType.THINKING_DELTA,
    StreamEventType.TOOLCALL_START,
    StreamEventType.TOOLCALL_DELTA,
}
_DELTAS = {
    StreamEventType.TEXT_DELTA,
    StreamEventType.THINKING_DELTA,
    StreamEventType.TOOLCALL_DELTA,
}
_ENDS = {
    StreamEventType.TEXT_END,
    StreamEventType.THINKING_END,
    StreamEventType.TOOLCALL_END,
}


def retry_delay(error: BaseException, attempt: int) -> float:
    """Backoff before retry *attempt* (0-indexed), in seconds.

    A provider retry-after hint wins; otherwise exponential from 1s. Both
    are capped at :data:`MAX_RETRY_DELAY`.
    """
    hint = get_retry_after(error)
    if hint > 0:
        return min(hint, MAX_RETRY_DELAY)
    return min(float(2**attempt), MAX_RETRY_DELAY)


def _model_id(model: object) -> str:
    return getattr(model, "model_id", None) or type(model).__name__


def _call_config(model: ChatModel, config: LoopConfig) -> CallConfig:
    level = config.thinking_level
    api_key = None
    if config.get_api_key is not None and isinstance(model, ProviderNamer):
        api_key = config.get_api_key(model.provider_name)
    return CallConfig(
        thinking_level=None if level is ThinkingLevel.OFF else level,
        thinking_budget=config.thinking_budgets.get(level, 0),
        api_key=api_key,
        session_id=config.session_id,
    )


def _finalize(message: Message) -> Message:
    return replace(message, timestamp=datetime.now(UTC))


def _closing(stream):
    # Plain async iterables have no aclose; generators do.
    return aclosing(stream) if hasattr(stream, "aclose") else nullcontext(stream)


async def _stream_model(
    model: ChatModel,
    messages: list[Message],
    tools: list[ToolSpec],
    options: CallConfig,
    emitter: EventEmitter,
) -> Message:
    try:
        stream = await model.generate_stream(messages, tools, options)
    except Exception as exc:
        logger.debug("Stream setup failed (%s), falling back to generate", exc)
        response = await model.generate(messages, tools, options)
        final = _finalize(response.message)
        await emitter.emit(MessageStartEvent(message=final))
        await emitter.emit(MessageEndEvent(message=final))
        return final

    started = False
    partial = Message(role=Role.ASSISTANT)
    async with _closing(stream):
        async for event in stream:
            if event.type in _OPEN_OR_DELTA:
                partial = event.message
                if not started:
                    started = True
                    await emitter.emit(MessageStartEvent(message=partial))
                if event.type in _DELTAS:
                    await emitter.emit(MessageUpdateEvent(message=partial, delta=event.delta))
            elif event.type in _ENDS:
                partial = event.message
            elif event.type is StreamEventType.DONE:
                partial = event.message
                break
            elif event.type is StreamEventType.ERROR:
                raise event.error or LLMCallError("model stream failed")

    # A stream that ends without "done" yields its last partial.
    final = _finalize(partial)
    if not started:
        await emitter.emit(MessageStartEvent(message=final))
    await emitter.emit(MessageEndEvent(message=final))
    return final


async def call_llm(
    run_ctx: RunContext,
    agent_ctx: AgentContext,
    config: LoopConfig,
    emitter: EventEmitter,
) -> Message:
    """Run the context pipeline and one model call.

    Emits message start/update/end events for the assistant reply and
    returns the final message. Raises on failure; retrying is the
    caller's job.
    """
    messages = list(agent_ctx.messages)
    if config.transform_context is not None:
        try:
            messages = await config.transform_context(run_ctx, messages)
        except Exception as exc:
            raise TransformContextError(f"transform context: {exc}") from exc

    convert = config.convert_to_llm or default_convert_to_llm
    llm_messages = repair_message_sequence(convert(messages))
    if agent_ctx.system_prompt:
        llm_messages.insert(0, system_message(agent_ctx.system_prompt))

    if config.stream_fn is not None:
        request = LLMRequest(messages=llm_messages, tools=build_tool_specs(agent_ctx.tools))
        response = await run_ctx.guard(config.stream_fn(run_ctx, request))
        final = _finalize(response.message)
        await emitter.emit(MessageStartEvent(message=final))
        await emitter.emit(MessageEndEvent(message=final))
        return final

    model = config.model
    if model is None:
        raise ModelNotConfiguredError()

    tools = build_tool_specs(agent_ctx.tools) if model.supports_tools() else []
    model_id = _model_id(model)
    with span("agentcore.llm", {"model": model_id, "messages": len(llm_messages)}) as s:
        try:
            with timed_operation(model=model_id):
                final = await run_ctx.guard(
                    _stream_model(model, llm_messages, tools, _call_config(model, config), emitter),
                )
        except Exception as exc:
            mark_error(s, exc)
            raise
    record_tokens(final.usage, model=model_id)
    return final


async def call_llm_with_retry(
    run_ctx: RunContext,
    agent_ctx: AgentContext,
    config: LoopConfig,
    emitter: EventEmitter,
) -> Message:
    """:func:`call_llm` with exponential backoff on retryable errors."""
    if config.max_retries <= 0:
        return await call_llm(run_ctx, agent_ctx, config, emitter)

    attempt = 0
    while True:
        try:
            return await call_llm(run_ctx, agent_ctx, config, emitter)
        except Exception as exc:
            if attempt >= config.max_retries or not is_retryable_error(exc):
                raise
            delay = retry_delay(exc, attempt)
            attempt += 1
            await emitter.emit(RetryEvent(info=RetryInfo(
                attempt=attempt, max_retries=config.max_retries, delay=delay, error=exc,
            )))
            logger.warning(
                "Retryable error (attempt %d/%d), retrying in %.1fs: %s",
                attempt, config.max_retries, delay, exc,
            )
            record_retry(exc, model=_model_id(config.model) if config.model else "")
            if not await run_ctx.sleep(delay):
                run_ctx.raise_if_cancelled()
