"""OTel provider setup (console and OTLP exporters)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_meter_provider: MeterProvider | None = None


@dataclass(frozen=True, slots=True)
class ObservabilityConfig:
    """Configuration for OTel exporters."""

    enabled: bool = False
    exporter: str = "console"  # console | otlp
    otlp_endpoint: str = "http://localhost:4317"
    service_name: str = "agentcore"


def _exporters(config: ObservabilityConfig) -> tuple[SpanExporter, MetricExporter]:
    if config.exporter == "otlp":
        # Shipped with the "otlp" extra.
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return (
            OTLPSpanExporter(endpoint=config.otlp_endpoint),
            OTLPMetricExporter(endpoint=config.otlp_endpoint),
        )
    if config.exporter != "console":
        raise ValueError(f"unknown exporter: {config.exporter!r}")
    return ConsoleSpanExporter(), ConsoleMetricExporter()


def configure_exporters(config: ObservabilityConfig) -> bool:
    """Install global TracerProvider and MeterProvider.

    Returns True if OTel was configured, False if disabled.
    """
    global _tracer_provider, _meter_provider

    if not config.enabled:
        return False

    resource = Resource.create({"service.name": config.service_name})
    span_exporter, metric_exporter = _exporters(config)

    tp = TracerProvider(resource=resource)
    tp.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tp)
    _tracer_provider = tp

    reader = PeriodicExportingMetricReader(metric_exporter)
    mp = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(mp)
    _meter_provider = mp

    logger.debug("OTel configured with %s exporter", config.exporter)
    return True


def shutdown() -> None:
    """Flush and shut down the providers installed by configure_exporters."""
    global _tracer_provider, _meter_provider

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None

    if _meter_provider is not None:
        _meter_provider.shutdown()
        _meter_provider = None
