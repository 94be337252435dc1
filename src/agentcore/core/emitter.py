"""Bounded event channel between the loop task and its consumer."""

from __future__ import annotations

import logging

import anyio
import anyio.lowlevel
from anyio.abc import ObjectReceiveStream, ObjectSendStream

from agentcore.types.config import DEFAULT_EVENT_BUFFER_SIZE
from agentcore.types.events import AgentEndEvent, ErrorEvent, Event
from agentcore.types.messages import AgentMessage

logger = logging.getLogger(__name__)


class EventEmitter:
    """Producer side of the loop's event channel.

    Emission never stalls the loop on a slow or absent consumer: when the
    buffer is full the event is dropped. Passing ``send_timeout`` trades
    that for bounded waiting, for consumers that need a complete trail
    (checkpointing from the event stream, audit logs).
    """

    def __init__(
        self,
        buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE,
        send_timeout: float | None = None,
    ) -> None:
        send: ObjectSendStream[Event]
        recv: ObjectReceiveStream[Event]
        send, recv = anyio.create_memory_object_stream[Event](max_buffer_size=buffer_size)
        self._send = send
        self._recv = recv
        self._send_timeout = send_timeout
        self.dropped = 0

    @property
    def receive_stream(self) -> ObjectReceiveStream[Event]:
        return self._recv

    async def emit(self, event: Event) -> None:
        """Send *event*, dropping it if the channel has no room."""
        try:
            self._send.send_nowait(event)
        except anyio.WouldBlock:
            if self._send_timeout is None or not await self._send_with_timeout(event):
                self.dropped += 1
                logger.debug("Event buffer full, dropped %s", event.type.value)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # Consumer went away; nothing left to deliver to.
            self.dropped += 1
        # Let an attached consumer drain before the loop moves on.
        await anyio.lowlevel.checkpoint()

    async def _send_with_timeout(self, event: Event) -> bool:
        with anyio.move_on_after(self._send_timeout):
            try:
                await self._send.send(event)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                return False
            return True
        return False

    async def emit_error(
        self,
        error: BaseException,
        new_messages: list[AgentMessage] | None = None,
    ) -> None:
        """Emit an error followed by the terminating agent_end."""
        await self.emit(ErrorEvent(error=error))
        await self.emit(AgentEndEvent(new_messages=list(new_messages or []), error=error))

    async def aclose(self) -> None:
        await self._send.aclose()
