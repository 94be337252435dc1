"""Tool building blocks."""

from agentcore.tools.base import BaseTool, ToolInputError, ToolParam, params_to_schema
from agentcore.tools.function import FuncTool

__all__ = ["BaseTool", "FuncTool", "ToolInputError", "ToolParam", "params_to_schema"]
