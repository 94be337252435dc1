"""Tests for the observability module."""

from __future__ import annotations

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from agentcore.observability.exporters import ObservabilityConfig, configure_exporters, shutdown
from agentcore.observability.metrics import (
    record_llm_latency,
    record_retry,
    record_tokens,
    record_tool_call,
    reset_instruments,
    timed_operation,
)
from agentcore.observability.tracing import get_tracer, mark_error, span
from agentcore.types.messages import Usage


class TestTracing:
    def test_get_tracer_returns_something(self) -> None:
        assert get_tracer() is not None

    def test_span_context_manager(self) -> None:
        with span("agentcore.test", attributes={"key": "value"}) as s:
            assert s is not None

    def test_mark_error_records_exception(self) -> None:
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        tracer = provider.get_tracer("test")

        with tracer.start_as_current_span("failing") as s:
            mark_error(s, ValueError("bad input"))

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code is StatusCode.ERROR
        assert finished.status.description == "bad input"
        assert finished.events[0].name == "exception"


class TestMetrics:
    def test_metric_functions_do_not_raise(self) -> None:
        record_tokens(Usage(input=100, output=50, cache_read=10), model="test")
        record_tokens(None, model="test")
        record_tool_call("echo", is_error=False)
        record_tool_call("echo", is_error=True)
        record_retry(TimeoutError(), model="test")
        record_llm_latency(12.5, model="test")

    def test_timed_operation(self) -> None:
        with timed_operation(model="test"):
            pass

    def test_timed_operation_propagates_errors(self) -> None:
        with pytest.raises(KeyError):
            with timed_operation(model="test"):
                raise KeyError("x")

    def test_reset_instruments(self) -> None:
        reset_instruments()
        # Instruments are re-created on next use
        record_tool_call("echo")
        reset_instruments()


class TestObservabilityConfig:
    def test_default_config(self) -> None:
        config = ObservabilityConfig()
        assert not config.enabled
        assert config.exporter == "console"
        assert config.service_name == "agentcore"

    def test_disabled_config_returns_false(self) -> None:
        assert configure_exporters(ObservabilityConfig(enabled=False)) is False

    def test_unknown_exporter(self) -> None:
        with pytest.raises(ValueError, match="unknown exporter"):
            configure_exporters(ObservabilityConfig(enabled=True, exporter="carrier-pigeon"))

    def test_shutdown_noop(self) -> None:
        """Shutdown should not raise even if nothing was configured."""
        shutdown()
