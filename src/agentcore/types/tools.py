"""Tool definition types and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from agentcore.types.messages import ToolCall

if TYPE_CHECKING:
    from agentcore.core.cancel import RunContext


ProgressReporter = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Tool description sent to the model (name + description + JSON schema)."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ToolContext:
    """Context passed to tool execute methods."""

    run: RunContext
    tool_call_id: str = ""
    tool_name: str = ""
    reporter: ProgressReporter | None = None

    async def report_progress(self, partial: Any) -> None:
        """Report a partial result while the tool is still running.

        Silently ignored when nobody is listening.
        """
        if self.reporter is not None:
            await self.reporter(partial)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tools must implement.

    ``execute`` returns the result (a ``str`` is passed through, anything
    else is JSON encoded) or raises to report an error back to the model.
    """

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def schema(self) -> dict[str, Any]: ...

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any: ...


@runtime_checkable
class ToolLabeler(Protocol):
    """Optional: tools that expose a human-readable label."""

    @property
    def label(self) -> str: ...


# Called once per tool call before execution. Return to allow; raise to deny.
# The exception text is sent back to the model as an error tool result.
PermissionFunc = Callable[["RunContext", ToolCall], "Awaitable[None] | None"]
