"""Rule-based permission checks for tool calls."""

from agentcore.permissions.rules import (
    PermissionConfig,
    PermissionDecision,
    PermissionRule,
    as_permission_func,
)

__all__ = ["PermissionConfig", "PermissionDecision", "PermissionRule", "as_permission_func"]
