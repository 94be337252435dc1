"""Engine: wires settings, model and tools into a single agent run."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from agentcore.core.cancel import RunContext
from agentcore.core.config import AgentSettings, load_settings, load_toml_config, resolve_api_key
from agentcore.core.loop import agent_loop
from agentcore.observability.exporters import ObservabilityConfig, configure_exporters
from agentcore.types.config import AgentContext, LoopConfig
from agentcore.types.events import Event
from agentcore.types.messages import AgentMessage, user_message
from agentcore.types.models import ChatModel, StreamFn
from agentcore.types.tools import PermissionFunc, Tool

logger = logging.getLogger(__name__)


def _init_observability(toml: dict[str, Any]) -> bool:
    """Configure OTel exporters from the ``[observability]`` section, if enabled."""
    section = toml.get("observability", {})
    if not section.get("enabled", False):
        return False
    config = ObservabilityConfig(
        enabled=True,
        exporter=section.get("exporter", "console"),
        otlp_endpoint=section.get("otlp_endpoint", "http://localhost:4317"),
        service_name=section.get("service_name", "agentcore"),
    )
    return configure_exporters(config)


async def run(
    prompt: str,
    *,
    model: ChatModel | None = None,
    tools: list[Tool] | None = None,
    system_prompt: str | None = None,
    history: list[AgentMessage] | None = None,
    stream_fn: StreamFn | None = None,
    permission: PermissionFunc | None = None,
    settings: AgentSettings | None = None,
    cwd: str | None = None,
    run_ctx: RunContext | None = None,
) -> AsyncIterator[Event]:
    """Run one prompt through the agent loop, yielding every event.

    This is the primary SDK entry point.

    Args:
        prompt: The user's instruction.
        model: Chat model adapter. Either this or ``stream_fn`` is required.
        tools: Tools the model may call.
        system_prompt: Overrides the configured system prompt.
        history: Prior conversation to continue from.
        stream_fn: Injectable model call (proxies, tests).
        permission: Called before each tool call; raise to deny.
        settings: Pre-resolved settings. Loaded from config files and
            ``AGENTCORE_*`` variables when omitted.
        cwd: Directory searched for ``.agentcore/config.toml``.
        run_ctx: Cancellation token; cancel it to abort the run.

    Yields:
        Loop events, ending with :class:`~agentcore.types.events.AgentEndEvent`.
    """
    if settings is None:
        _init_observability(load_toml_config(cwd))
        settings = load_settings(cwd)

    config = LoopConfig(
        model=model,
        stream_fn=stream_fn,
        max_turns=settings.max_turns,
        max_retries=settings.max_retries,
        max_tool_errors=settings.max_tool_errors,
        thinking_level=settings.thinking_level,
        thinking_budgets=dict(settings.thinking_budgets),
        get_api_key=resolve_api_key,
        check_permission=permission,
        event_buffer_size=settings.event_buffer_size,
        event_send_timeout=settings.event_send_timeout,
    )
    agent_ctx = AgentContext(
        system_prompt=settings.system_prompt if system_prompt is None else system_prompt,
        messages=list(history or []),
        tools=list(tools or []),
    )
    run_ctx = run_ctx or RunContext()

    stream = agent_loop(run_ctx, [user_message(prompt)], agent_ctx, config)
    try:
        async for event in stream:
            yield event
    finally:
        if not stream.done():
            # Consumer stopped early: stop the loop too.
            logger.debug("Event consumer closed before the run finished; cancelling")
            run_ctx.cancel()
            await stream.result()
