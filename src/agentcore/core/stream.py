"""Live event iteration plus deferred result collection for one loop run."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from anyio.abc import ObjectReceiveStream

from agentcore.types.events import AgentEndEvent, ErrorEvent, Event
from agentcore.types.messages import AgentMessage

RunOutcome = tuple[list[AgentMessage], BaseException | None]


class EventStream:
    """Async-iterable view of a running loop.

    Usage::

        stream = agent_loop(run_ctx, prompts, agent_ctx, config)
        async for event in stream:
            ...
        new_messages, error = await stream.result()

    ``result()`` does not depend on the events: it is the loop task's own
    return value, so it stays correct even when events were dropped or
    never iterated.
    """

    def __init__(self, events: ObjectReceiveStream[Event], task: asyncio.Task[RunOutcome]) -> None:
        self._events = events
        self._task = task

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        async with self._events:
            async for event in self._events:
                yield event

    @property
    def task(self) -> asyncio.Task[RunOutcome]:
        return self._task

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> RunOutcome:
        """Wait for the run to finish; return ``(new_messages, last_error)``."""
        return await self._task


async def collect(events: AsyncIterator[Event] | EventStream) -> RunOutcome:
    """Drain *events* and return the agent_end messages and the last error."""
    messages: list[AgentMessage] = []
    error: BaseException | None = None
    async for event in events:
        if isinstance(event, AgentEndEvent):
            messages = list(event.new_messages)
        elif isinstance(event, ErrorEvent):
            error = event.error
    return messages, error
