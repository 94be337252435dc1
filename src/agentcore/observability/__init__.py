"""OpenTelemetry-based observability for agentcore."""

from agentcore.observability.exporters import ObservabilityConfig, configure_exporters, shutdown
from agentcore.observability.metrics import (
    record_llm_latency,
    record_retry,
    record_tokens,
    record_tool_call,
    timed_operation,
)
from agentcore.observability.tracing import get_tracer, span

__all__ = [
    "ObservabilityConfig",
    "configure_exporters",
    "get_tracer",
    "record_llm_latency",
    "record_retry",
    "record_tokens",
    "record_tool_call",
    "shutdown",
    "span",
    "timed_operation",
]
