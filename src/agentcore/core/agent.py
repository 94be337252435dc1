"""Stateful agent: single-flight runs, message queues and event listeners."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any

from agentcore.core.cancel import RunContext
from agentcore.core.config import AgentSettings
from agentcore.core.context import estimate_context_tokens
from agentcore.core.loop import agent_loop, agent_loop_continue
from agentcore.core.steering import MessageQueue
from agentcore.core.stream import EventStream, RunOutcome
from agentcore.errors import AgentBusyError, AgentError
from agentcore.types.config import (
    DEFAULT_EVENT_BUFFER_SIZE,
    DEFAULT_MAX_TURNS,
    AgentContext,
    AgentState,
    ApiKeyResolver,
    ContextEstimateFn,
    ContextUsage,
    ConvertToLLMFn,
    LoopConfig,
    QueueMode,
    TransformContextFn,
)
from agentcore.types.events import (
    AgentEndEvent,
    ErrorEvent,
    Event,
    MessageEndEvent,
    MessageStartEvent,
    MessageUpdateEvent,
    ToolExecEndEvent,
    ToolExecStartEvent,
    TurnEndEvent,
)
from agentcore.types.messages import (
    AgentMessage,
    Message,
    Role,
    StopReason,
    Usage,
    collect_messages,
    message_from_dict,
    message_to_dict,
    user_message,
)
from agentcore.types.models import ChatModel, StreamFn, ThinkingLevel
from agentcore.types.tools import PermissionFunc, Tool

logger = logging.getLogger(__name__)

Listener = Callable[[Event], Any]


def _as_message(value: str | AgentMessage) -> AgentMessage:
    return user_message(value) if isinstance(value, str) else value


class Agent:
    """Stateful wrapper around the agent loop.

    The agent is itself just a consumer of loop events: a background task
    reads each run's event stream, folds it into history, usage and the
    streaming snapshot, then forwards the event to subscribers.

    Usage::

        agent = Agent(model, system_prompt="You are terse.", tools=[clock])
        agent.subscribe(print)
        await agent.prompt("What time is it?")
        await agent.wait_for_idle()

    Only one run may be active. ``steer``, ``follow_up`` and ``abort`` are
    safe to call from any thread while it runs.
    """

    def __init__(
        self,
        model: ChatModel | None = None,
        *,
        system_prompt: str = "",
        tools: list[Tool] | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        max_retries: int = 3,
        max_tool_errors: int = 3,
        thinking_level: ThinkingLevel = ThinkingLevel.OFF,
        thinking_budgets: dict[ThinkingLevel, int] | None = None,
        session_id: str | None = None,
        get_api_key: ApiKeyResolver | None = None,
        stream_fn: StreamFn | None = None,
        transform_context: TransformContextFn | None = None,
        convert_to_llm: ConvertToLLMFn | None = None,
        steering_mode: QueueMode = QueueMode.ALL,
        follow_up_mode: QueueMode = QueueMode.ALL,
        context_window: int = 0,
        context_estimate: ContextEstimateFn | None = estimate_context_tokens,
        permission: PermissionFunc | None = None,
        event_buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE,
        event_send_timeout: float | None = None,
    ) -> None:
        self._lock = threading.Lock()

        # Configuration
        self._model = model
        self._system_prompt = system_prompt
        self._tools = list(tools or [])
        self._max_turns = max_turns
        self._max_retries = max_retries
        self._max_tool_errors = max_tool_errors
        self._thinking_level = thinking_level
        self._thinking_budgets = dict(thinking_budgets or {})
        self._session_id = session_id
        self._get_api_key = get_api_key
        self._stream_fn = stream_fn
        self._transform_context = transform_context
        self._convert_to_llm = convert_to_llm
        self._context_window = context_window
        self._context_estimate = context_estimate
        self._permission = permission
        self._event_buffer_size = event_buffer_size
        self._event_send_timeout = event_send_timeout

        # State, written by the consumer task while a run is active
        self._messages: list[AgentMessage] = []
        self._running = False
        self._error = ""
        self._stream_message: AgentMessage | None = None
        self._pending_tool_calls: set[str] = set()
        self._total_usage = Usage()

        self._steering = MessageQueue(steering_mode)
        self._follow_up = MessageQueue(follow_up_mode)

        self._listeners: dict[int, Listener] = {}
        self._next_listener_id = 0

        self._run_ctx: RunContext | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stream: EventStream | None = None
        self._consumer: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: AgentSettings, **overrides: Any) -> Agent:
        """Build an agent from resolved settings; keyword overrides win."""
        kwargs: dict[str, Any] = {
            "system_prompt": settings.system_prompt,
            "max_turns": settings.max_turns,
            "max_retries": settings.max_retries,
            "max_tool_errors": settings.max_tool_errors,
            "thinking_level": settings.thinking_level,
            "thinking_budgets": settings.thinking_budgets,
            "steering_mode": settings.steering_mode,
            "follow_up_mode": settings.follow_up_mode,
            "context_window": settings.context_window,
            "event_buffer_size": settings.event_buffer_size,
            "event_send_timeout": settings.event_send_timeout,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for every event. Returns an unsubscribe function.

        Listeners run on the consumer task with the agent lock released, so
        they may call back into the agent. Coroutine listeners are awaited.
        """
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def prompt(self, *inputs: str | AgentMessage) -> None:
        """Start a run with new input. Text becomes a user message.

        Raises :class:`AgentBusyError` if a run is already active.
        """
        await self.prompt_messages(*(_as_message(i) for i in inputs))

    async def prompt_messages(self, *messages: AgentMessage) -> None:
        with self._lock:
            if self._running:
                raise AgentBusyError(
                    "agent is already running; use steer() or follow_up() to queue messages"
                )
            run_ctx, agent_ctx, config = self._begin_run()
            self._attach(agent_loop(run_ctx, list(messages), agent_ctx, config))

    async def continue_(self) -> None:
        """Resume from the current history without adding input.

        When the history ends with an assistant message there is nothing
        to answer, so queued steering (then follow-up) messages are used
        as the prompt instead.
        """
        with self._lock:
            if self._running:
                raise AgentBusyError("agent is already running")
            if not self._messages:
                raise AgentError("no messages to continue from")

            if self._messages[-1].role is not Role.ASSISTANT:
                run_ctx, agent_ctx, config = self._begin_run()
                self._attach(agent_loop_continue(run_ctx, agent_ctx, config))
                return

            queued = self._steering.drain() or self._follow_up.drain()
            if not queued:
                raise AgentError("cannot continue from assistant message without queued messages")

        await self.prompt_messages(*queued)

    async def run(self, *inputs: str | AgentMessage) -> RunOutcome:
        """Prompt and wait; returns ``(new_messages, last_error)``."""
        await self.prompt(*inputs)
        with self._lock:
            stream = self._stream
        await self.wait_for_idle()
        if stream is None:
            raise AgentError("run did not start")
        return await stream.result()

    def _begin_run(self) -> tuple[RunContext, AgentContext, LoopConfig]:
        # Lock held.
        self._running = True
        self._error = ""
        self._run_ctx = RunContext()
        self._loop = asyncio.get_running_loop()
        agent_ctx = AgentContext(
            system_prompt=self._system_prompt,
            messages=list(self._messages),
            tools=list(self._tools),
        )
        return self._run_ctx, agent_ctx, self._build_config()

    def _attach(self, stream: EventStream) -> None:
        # Lock held.
        self._stream = stream
        self._consumer = asyncio.create_task(self._consume(stream))

    def _build_config(self) -> LoopConfig:
        return LoopConfig(
            model=self._model,
            stream_fn=self._stream_fn,
            max_turns=self._max_turns,
            max_retries=self._max_retries,
            max_tool_errors=self._max_tool_errors,
            thinking_level=self._thinking_level,
            thinking_budgets=dict(self._thinking_budgets),
            session_id=self._session_id,
            get_api_key=self._get_api_key,
            transform_context=self._transform_context,
            convert_to_llm=self._convert_to_llm,
            check_permission=self._permission,
            get_steering_messages=self._drain_steering,
            get_follow_up_messages=self._drain_follow_up,
            event_buffer_size=self._event_buffer_size,
            event_send_timeout=self._event_send_timeout,
        )

    def _drain_steering(self) -> list[AgentMessage]:
        with self._lock:
            return self._steering.drain()

    def _drain_follow_up(self) -> list[AgentMessage]:
        with self._lock:
            return self._follow_up.drain()

    def abort(self) -> None:
        """Cancel the active run, if any."""
        with self._lock:
            run_ctx, loop = self._run_ctx, self._loop
        if run_ctx is None:
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if loop is None or current is loop:
            run_ctx.cancel()
        else:
            loop.call_soon_threadsafe(run_ctx.cancel)

    async def wait_for_idle(self) -> None:
        """Wait until the active run (and its event consumer) has finished."""
        with self._lock:
            consumer = self._consumer
        if consumer is not None:
            await asyncio.shield(consumer)

    # ------------------------------------------------------------------
    # Event consumer
    # ------------------------------------------------------------------

    async def _consume(self, stream: EventStream) -> None:
        partial: AgentMessage | None = None
        try:
            async for event in stream:
                with self._lock:
                    partial = self._apply(event, partial)
                    listeners = list(self._listeners.values())
                for listener in listeners:
                    await self._notify(listener, event)
        finally:
            with self._lock:
                # A stream cut short mid-message keeps what was produced.
                if isinstance(partial, Message) and not partial.is_empty():
                    self._messages.append(partial)
                self._running = False
                self._stream_message = None
                self._pending_tool_calls.clear()
                self._run_ctx = None

    def _apply(self, event: Event, partial: AgentMessage | None) -> AgentMessage | None:
        # Lock held. Returns the in-flight partial message.
        match event:
            case MessageStartEvent(message=msg) | MessageUpdateEvent(message=msg):
                self._stream_message = msg
                return msg
            case MessageEndEvent(message=msg):
                self._stream_message = None
                self._messages.append(msg)
                if isinstance(msg, Message):
                    self._total_usage.add(msg.usage)
                return None
            case ToolExecStartEvent(tool_call_id=call_id):
                if call_id:
                    self._pending_tool_calls.add(call_id)
            case ToolExecEndEvent(tool_call_id=call_id):
                self._pending_tool_calls.discard(call_id)
            case TurnEndEvent(message=msg):
                if isinstance(msg, Message):
                    error_message = msg.metadata.get("error_message")
                    if isinstance(error_message, str) and error_message:
                        self._error = error_message
            case ErrorEvent(error=err):
                if isinstance(partial, Message) and not partial.is_empty():
                    self._messages.append(partial)
                self._stream_message = None
                self._error = str(err)
                self._messages.append(Message(
                    role=Role.ASSISTANT,
                    stop_reason=StopReason.ERROR,
                    metadata={"error_message": str(err)},
                ))
                return None
            case AgentEndEvent():
                self._stream_message = None
                self._pending_tool_calls.clear()
        return partial

    async def _notify(self, listener: Listener, event: Event) -> None:
        try:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("Listener %r failed on %s", listener, event.type.value, exc_info=True)

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    def steer(self, message: str | AgentMessage) -> None:
        """Interrupt the run: remaining tool calls are skipped and *message*
        is delivered before the next model call."""
        with self._lock:
            self._steering.push(_as_message(message))

    def follow_up(self, message: str | AgentMessage) -> None:
        """Queue *message* for when the agent would otherwise stop."""
        with self._lock:
            self._follow_up.push(_as_message(message))

    def clear_steering_queue(self) -> None:
        with self._lock:
            self._steering.clear()

    def clear_follow_up_queue(self) -> None:
        with self._lock:
            self._follow_up.clear()

    def has_queued_messages(self) -> bool:
        with self._lock:
            return bool(self._steering) or bool(self._follow_up)

    # ------------------------------------------------------------------
    # Configuration (takes effect on the next run)
    # ------------------------------------------------------------------

    def set_model(self, model: ChatModel) -> None:
        with self._lock:
            self._model = model

    def set_system_prompt(self, prompt: str) -> None:
        with self._lock:
            self._system_prompt = prompt

    def set_tools(self, *tools: Tool) -> None:
        with self._lock:
            self._tools = list(tools)

    def set_thinking_level(self, level: ThinkingLevel) -> None:
        with self._lock:
            self._thinking_level = level

    def set_steering_mode(self, mode: QueueMode) -> None:
        with self._lock:
            self._steering.mode = mode

    def set_follow_up_mode(self, mode: QueueMode) -> None:
        with self._lock:
            self._follow_up.mode = mode

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def state(self) -> AgentState:
        with self._lock:
            return AgentState(
                system_prompt=self._system_prompt,
                messages=list(self._messages),
                tools=list(self._tools),
                is_running=self._running,
                stream_message=self._stream_message,
                pending_tool_calls=frozenset(self._pending_tool_calls),
                total_usage=self._total_usage.copy(),
                error=self._error,
            )

    def messages(self) -> list[AgentMessage]:
        with self._lock:
            return list(self._messages)

    def set_messages(self, messages: list[AgentMessage]) -> None:
        """Replace the history, e.g. to restore a saved conversation."""
        with self._lock:
            if self._running:
                raise AgentBusyError("cannot set messages while agent is running")
            self._messages = list(messages)

    def export_messages(self) -> list[dict[str, Any]]:
        """History as JSON-safe dicts. Custom message types are left out."""
        with self._lock:
            return [message_to_dict(m) for m in collect_messages(self._messages)]

    def import_messages(self, data: list[dict[str, Any]]) -> None:
        self.set_messages([message_from_dict(d) for d in data])

    def clear_messages(self) -> None:
        with self._lock:
            self._messages = []

    def total_usage(self) -> Usage:
        with self._lock:
            return self._total_usage.copy()

    def context_usage(self) -> ContextUsage | None:
        """Estimated context window occupancy, or None without a window size."""
        with self._lock:
            if self._context_window <= 0 or self._context_estimate is None:
                return None
            tokens, usage_tokens, trailing_tokens = self._context_estimate(self._messages)
            return ContextUsage(
                tokens=tokens,
                context_window=self._context_window,
                percent=tokens / self._context_window * 100,
                usage_tokens=usage_tokens,
                trailing_tokens=trailing_tokens,
            )

    def reset(self) -> None:
        """Clear history, queues, usage and error state."""
        with self._lock:
            self._messages = []
            self._steering.clear()
            self._follow_up.clear()
            self._error = ""
            self._stream_message = None
            self._pending_tool_calls.clear()
            self._total_usage = Usage()
