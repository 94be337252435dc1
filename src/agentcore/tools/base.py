"""Base tool class with JSON-schema building from parameter declarations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from agentcore.types.tools import ToolContext


@dataclass(frozen=True, slots=True)
class ToolParam:
    """A parameter for a tool."""

    name: str
    type: str  # "string", "integer", "number", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # For array types: JSON Schema for items


def param_to_schema(param: ToolParam) -> dict[str, Any]:
    """Render a single :class:`ToolParam` as a JSON Schema property dict."""
    prop: dict[str, Any] = {
        "type": param.type,
        "description": param.description,
    }
    if param.enum is not None:
        prop["enum"] = list(param.enum)
    if param.default is not None:
        prop["default"] = param.default
    # Array types require an items schema (some providers enforce this).
    if param.type == "array":
        prop["items"] = param.items or {"type": "string"}
    return prop


def params_to_schema(params: tuple[ToolParam, ...] | list[ToolParam]) -> dict[str, Any]:
    """Build a JSON Schema ``object`` from parameter declarations.

    >>> schema = params_to_schema([ToolParam("path", "string", "Absolute path")])
    >>> schema["properties"]["path"]["type"]
    'string'
    >>> schema["required"]
    ['path']
    """
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in params:
        properties[param.name] = param_to_schema(param)
        if param.required:
            required.append(param.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


class ToolInputError(ValueError):
    """The model called a tool with missing or malformed arguments."""


class BaseTool(ABC):
    """Base class for tools declared with :class:`ToolParam` parameters.

    Sub-classes set ``name``, ``description`` and ``params`` as class
    attributes and implement :meth:`execute`. Raising reports an error
    result to the model; any return value is sent back as the result.
    """

    name: str = ""
    description: str = ""
    params: tuple[ToolParam, ...] = ()

    @property
    def label(self) -> str:
        return self.name

    @property
    def schema(self) -> dict[str, Any]:
        return params_to_schema(self.params)

    @abstractmethod
    async def execute(self, args: dict[str, Any], ctx: ToolContext) -> Any:
        ...

    def _require(self, args: dict[str, Any]) -> None:
        """Raise :class:`ToolInputError` if a required argument is missing."""
        missing = [p.name for p in self.params if p.required and p.name not in args]
        if missing:
            raise ToolInputError(f"{self.name}: missing required argument(s): {', '.join(missing)}")
