"""
Live provider construction.

Only called once the autoload gate has opened. Builds SDK tracer, meter and
logger providers and the text map propagator from the standard OTEL_*
environment variables. Exporters pick up their endpoint, headers and TLS
settings from OTEL_EXPORTER_OTLP_* themselves.
"""

import logging
from importlib.metadata import entry_points
from typing import List, Protocol

from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from otel_autoload.config import AutoloadSettings
from otel_autoload.registry import NoOpTextMapPropagator, ProviderBundle

logger = logging.getLogger(__name__)

EXPORTER_OTLP = "otlp"
EXPORTER_CONSOLE = "console"
EXPORTER_NONE = "none"

_BUILTIN_PROPAGATORS = {
    "tracecontext": TraceContextTextMapPropagator,
    "baggage": W3CBaggagePropagator,
}


class ProviderFactory(Protocol):
    """Builds live providers once the gate has opened."""

    def create_propagator(self) -> TextMapPropagator: ...

    def create_bundle(self) -> ProviderBundle: ...


def _exporter_name(signal: str, value: str) -> str:
    name = value.strip().lower() or EXPORTER_NONE
    if name not in (EXPORTER_OTLP, EXPORTER_CONSOLE, EXPORTER_NONE):
        logger.warning(f"Unknown {signal} exporter '{value}', exporting nothing")
        return EXPORTER_NONE
    return name


def _load_propagator(name: str) -> TextMapPropagator:
    """Resolve a propagator by name: built-ins first, then installed entry points."""
    builtin = _BUILTIN_PROPAGATORS.get(name)
    if builtin is not None:
        return builtin()

    matches = list(entry_points(group="opentelemetry_propagator", name=name))
    if not matches:
        raise ValueError(f"Propagator '{name}' not found")
    return matches[0].load()()


class SdkProviderFactory:
    """Creates OpenTelemetry SDK providers from AutoloadSettings."""

    def __init__(self, settings: AutoloadSettings):
        self.settings = settings

    def create_propagator(self) -> TextMapPropagator:
        names = self.settings.propagator_names
        if not names or "none" in names:
            logger.debug("Propagation disabled (OTEL_PROPAGATORS=none)")
            return NoOpTextMapPropagator()

        propagators: List[TextMapPropagator] = []
        for name in names:
            try:
                propagators.append(_load_propagator(name))
            except Exception as e:
                logger.warning(f"Skipping propagator '{name}': {e}")

        if not propagators:
            return NoOpTextMapPropagator()
        return CompositePropagator(propagators)

    def create_tracer_provider(self, resource: Resource) -> TracerProvider:
        tracer_provider = TracerProvider(resource=resource)
        exporter = _exporter_name("traces", self.settings.otel_traces_exporter)
        if exporter == EXPORTER_OTLP:
            tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
        elif exporter == EXPORTER_CONSOLE:
            tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        return tracer_provider

    def create_meter_provider(self, resource: Resource) -> MeterProvider:
        readers: List[MetricReader] = []
        exporter = _exporter_name("metrics", self.settings.otel_metrics_exporter)
        if exporter == EXPORTER_OTLP:
            readers.append(PeriodicExportingMetricReader(OTLPMetricExporter()))
        elif exporter == EXPORTER_CONSOLE:
            readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
        return MeterProvider(resource=resource, metric_readers=readers)

    def create_logger_provider(self, resource: Resource) -> LoggerProvider:
        logger_provider = LoggerProvider(resource=resource)
        exporter = _exporter_name("logs", self.settings.otel_logs_exporter)
        if exporter == EXPORTER_OTLP:
            logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter()))
        elif exporter == EXPORTER_CONSOLE:
            logger_provider.add_log_record_processor(BatchLogRecordProcessor(ConsoleLogExporter()))
        return logger_provider

    def create_bundle(self) -> ProviderBundle:
        # Resource.create merges OTEL_SERVICE_NAME and OTEL_RESOURCE_ATTRIBUTES
        resource = Resource.create()
        return ProviderBundle(
            tracer_provider=self.create_tracer_provider(resource),
            meter_provider=self.create_meter_provider(resource),
            logger_provider=self.create_logger_provider(resource),
            propagator=self.create_propagator(),
        )
