"""Steering and follow-up message queues."""

from __future__ import annotations

from collections import deque

from agentcore.types.config import QueueMode
from agentcore.types.messages import AgentMessage


class MessageQueue:
    """FIFO of messages waiting to be injected into a run.

    Not synchronized on its own; :class:`~agentcore.core.agent.Agent`
    guards its queues with the agent lock.
    """

    def __init__(self, mode: QueueMode = QueueMode.ALL) -> None:
        self.mode = mode
        self._items: deque[AgentMessage] = deque()

    def push(self, message: AgentMessage) -> None:
        self._items.append(message)

    def drain(self) -> list[AgentMessage]:
        """Dequeue according to :attr:`mode`: everything, or the oldest only."""
        if not self._items:
            return []
        if self.mode is QueueMode.ONE_AT_A_TIME:
            return [self._items.popleft()]
        items = list(self._items)
        self._items.clear()
        return items

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
