"""Cooperative cancellation for one agent run."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import anyio

from agentcore.errors import RunCancelledError

T = TypeVar("T")


class RunContext:
    """Cancellation token scoping a single run.

    The loop checks :attr:`cancelled` at iteration boundaries; suspension
    points (model calls, retry sleeps, tool execution) go through
    :meth:`guard` or :meth:`sleep` so a cancel also interrupts them.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._error: BaseException | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> BaseException | None:
        """The cancellation error, or None while the run is live."""
        return self._error

    def cancel(self, error: BaseException | None = None) -> None:
        if self._event.is_set():
            return
        self._error = error or RunCancelledError()
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._error is not None:
            raise self._error

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for *delay* seconds. Returns False if cancelled first."""
        if self.cancelled:
            return False
        with anyio.move_on_after(delay):
            await self._event.wait()
        return not self.cancelled

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, abandoning it if the run is cancelled meanwhile."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        self.raise_if_cancelled()
        raise RunCancelledError()  # pragma: no cover
