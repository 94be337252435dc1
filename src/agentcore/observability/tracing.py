"""Tracer access and a span context manager."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode


def get_tracer(name: str = "agentcore") -> trace.Tracer:
    return trace.get_tracer(name)


@contextmanager
def span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Run the block inside a span on the global tracer provider."""
    tracer = get_tracer()
    with tracer.start_as_current_span(name, attributes=attributes) as s:
        yield s


def mark_error(s: Span, error: BaseException) -> None:
    """Record *error* on *s* and flag the span as failed."""
    s.record_exception(error)
    s.set_status(Status(StatusCode.ERROR, str(error)))
