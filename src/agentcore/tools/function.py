"""Wrap a plain function as a tool."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from agentcore.tools.base import BaseTool, ToolParam
from agentcore.types.tools import ToolContext


class FuncTool(BaseTool):
    """A tool backed by a sync or async function.

    The model's arguments are passed as keyword arguments. A function that
    declares a ``ctx`` parameter also receives the :class:`ToolContext`::

        async def add(a: int, b: int) -> int:
            return a + b

        adder = FuncTool("add", "Add two integers.", add, params=(
            ToolParam("a", "integer", "First operand"),
            ToolParam("b", "integer", "Second operand"),
        ))
    """

    def __init__(
        self,
        name: str,
        description: str,
        fn: Callable[..., Any],
        *,
        params: tuple[ToolParam, ...] = (),
        label: str = "",
    ) -> None:
        self.name = name
        self.description = description
        self.params = params
        self._fn = fn
        self._label = label
        self._wants_ctx = "ctx" in inspect.signature(fn).parameters

    @property
    def label(self) -> str:
        return self._label or self.name

    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        self._require(args)
        kwargs = dict(args)
        if self._wants_ctx:
            kwargs["ctx"] = ctx
        result = self._fn(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
