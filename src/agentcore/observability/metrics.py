"""Metrics recording: counters and histograms on the global meter provider."""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import metrics

from agentcore.types.messages import Usage

# Lazily-created instruments
_meter: Any = None
_token_counter: Any = None
_tool_call_counter: Any = None
_retry_counter: Any = None
_latency_histogram: Any = None


def _ensure_instruments() -> None:
    """Create meter and instruments on first use."""
    global _meter, _token_counter, _tool_call_counter, _retry_counter, _latency_histogram

    if _meter is not None:
        return

    _meter = metrics.get_meter("agentcore")
    _token_counter = _meter.create_counter(
        "agentcore.tokens",
        description="Total tokens consumed",
        unit="tokens",
    )
    _tool_call_counter = _meter.create_counter(
        "agentcore.tool_calls",
        description="Total tool calls executed",
    )
    _retry_counter = _meter.create_counter(
        "agentcore.retries",
        description="Model calls retried after a transient error",
    )
    _latency_histogram = _meter.create_histogram(
        "agentcore.llm_latency",
        description="Model call latency",
        unit="ms",
    )


def record_tokens(usage: Usage | None, *, model: str = "") -> None:
    """Record token usage reported on an assistant message."""
    if usage is None:
        return
    _ensure_instruments()
    attrs = {"model": model}
    _token_counter.add(usage.input, {"direction": "input", **attrs})
    _token_counter.add(usage.output, {"direction": "output", **attrs})
    if usage.cache_read:
        _token_counter.add(usage.cache_read, {"direction": "cache_read", **attrs})
    if usage.cache_write:
        _token_counter.add(usage.cache_write, {"direction": "cache_write", **attrs})


def record_tool_call(tool_name: str, *, is_error: bool = False) -> None:
    """Record a tool call execution."""
    _ensure_instruments()
    _tool_call_counter.add(1, {"tool": tool_name, "error": str(is_error).lower()})


def record_retry(error: BaseException, *, model: str = "") -> None:
    _ensure_instruments()
    _retry_counter.add(1, {"error": type(error).__name__, "model": model})


def record_llm_latency(latency_ms: float, *, model: str = "") -> None:
    """Record model call latency in milliseconds."""
    _ensure_instruments()
    _latency_histogram.record(latency_ms, {"model": model})


@contextmanager
def timed_operation(*, model: str = "") -> Generator[None, None, None]:
    """Context manager that measures wall-clock time and records it as latency."""
    start = time.monotonic()
    try:
        yield
    finally:
        elapsed_ms = (time.monotonic() - start) * 1000
        record_llm_latency(elapsed_ms, model=model)


def reset_instruments() -> None:
    """Reset module-level instruments, for test isolation."""
    global _meter, _token_counter, _tool_call_counter, _retry_counter, _latency_histogram
    _meter = None
    _token_counter = None
    _tool_call_counter = None
    _retry_counter = None
    _latency_histogram = None
