"""Exception types raised by agentcore.

Inside a run, none of these cross the event boundary as raised exceptions:
the loop reports them as values on :class:`~agentcore.types.events.ErrorEvent`
or as error :class:`~agentcore.types.messages.ToolResult` objects. They are
raised directly only for API misuse on :class:`~agentcore.core.agent.Agent`.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base class for all agentcore errors."""


class AgentBusyError(AgentError):
    """A run was started while another run on the same agent is active."""


class ModelNotConfiguredError(AgentError):
    """Neither a model nor a stream function is configured."""

    def __init__(self, message: str = "no model configured") -> None:
        super().__init__(message)


class TransformContextError(AgentError):
    """The context transform hook failed."""


class LLMCallError(AgentError):
    """A model call failed after retries were exhausted or skipped."""


class MaxTurnsError(AgentError):
    """The run reached its turn limit."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"max turns ({max_turns}) reached")
        self.max_turns = max_turns


class RunCancelledError(AgentError):
    """The run context was cancelled (usually by ``Agent.abort``)."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class PermissionDeniedError(AgentError):
    """A permission check refused a tool call."""


class ProviderError(AgentError):
    """Error reported by a model provider.

    Adapters raise this (or any exception exposing the same attributes) so
    the retry classifier can decide whether the call is worth repeating.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.retryable = retryable
