"""Permission rules and a rule-based permission hook for the loop."""

from __future__ import annotations

import fnmatch
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentcore.core.cancel import RunContext
from agentcore.errors import PermissionDeniedError
from agentcore.types.messages import ToolCall
from agentcore.types.tools import PermissionFunc

logger = logging.getLogger(__name__)


class PermissionDecision(Enum):
    """Result of a permission check."""

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


@dataclass(frozen=True, slots=True)
class PermissionRule:
    """A single permission rule.

    Rules are evaluated in priority order: explicit deny > explicit allow > default.
    """

    tool: str  # Tool name or glob pattern (e.g. "bash", "fs_*", "*")
    decision: PermissionDecision
    args_pattern: dict[str, str] | None = None  # Optional arg matchers


@dataclass(slots=True)
class PermissionConfig:
    """Explicit rules plus the decision for calls no rule matches."""

    deny_rules: list[PermissionRule] = field(default_factory=list)
    allow_rules: list[PermissionRule] = field(default_factory=list)
    default: PermissionDecision = PermissionDecision.ALLOW

    def add_deny(
        self, tool: str, args_pattern: dict[str, str] | None = None,
    ) -> None:
        self.deny_rules.append(
            PermissionRule(tool=tool, decision=PermissionDecision.DENY, args_pattern=args_pattern),
        )

    def add_allow(
        self, tool: str, args_pattern: dict[str, str] | None = None,
    ) -> None:
        self.allow_rules.append(
            PermissionRule(tool=tool, decision=PermissionDecision.ALLOW, args_pattern=args_pattern),
        )

    def check(self, tool_name: str, args: dict[str, Any] | None = None) -> PermissionDecision:
        check_args = args or {}
        for rule in self.deny_rules:
            if _matches_rule(rule, tool_name, check_args):
                return PermissionDecision.DENY
        for rule in self.allow_rules:
            if _matches_rule(rule, tool_name, check_args):
                return PermissionDecision.ALLOW
        return self.default


def _matches_rule(
    rule: PermissionRule,
    tool_name: str,
    args: dict[str, Any],
) -> bool:
    """Check if a rule matches a tool call."""
    if not fnmatch.fnmatch(tool_name, rule.tool):
        return False
    if rule.args_pattern:
        for key, pattern in rule.args_pattern.items():
            val = str(args.get(key, ""))
            if not fnmatch.fnmatch(val, pattern):
                return False
    return True


Approver = Callable[[ToolCall], "bool | Awaitable[bool]"]


def as_permission_func(config: PermissionConfig, approve: Approver | None = None) -> PermissionFunc:
    """Turn *config* into a loop permission hook.

    ``ASK`` decisions go to *approve*; without an approver they are denied.
    """

    async def check_permission(run_ctx: RunContext, call: ToolCall) -> None:
        decision = config.check(call.name, call.args)
        if decision is PermissionDecision.ALLOW:
            return
        if decision is PermissionDecision.ASK and approve is not None:
            approved = approve(call)
            if inspect.isawaitable(approved):
                approved = await approved
            if approved:
                return
            raise PermissionDeniedError(f'tool call "{call.name}" was denied by user')
        logger.debug("Tool %s denied by rule", call.name)
        raise PermissionDeniedError(f'permission denied: tool "{call.name}" is not allowed')

    return check_permission
