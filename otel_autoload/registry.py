"""
Process-wide provider registry.

Holds the current tracer, meter and logger providers and the text map
propagator. Until something is installed every accessor hands out the no-op
variant for its category, built on first use and cached, so instrumented code
never has to check whether telemetry is active.

Instrumented code should look providers up at the time of use: a reference
obtained before autoload() ran keeps pointing at the no-op variant.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from opentelemetry import metrics, propagate, trace
from opentelemetry import _logs as otel_logs
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import (
    CarrierT,
    Getter,
    Setter,
    TextMapPropagator,
    default_getter,
    default_setter,
)

logger = logging.getLogger(__name__)


class NoOpTextMapPropagator(TextMapPropagator):
    """Propagator that neither injects nor extracts anything."""

    def extract(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        getter: Getter[CarrierT] = default_getter,
    ) -> Context:
        return context if context is not None else Context()

    def inject(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        setter: Setter[CarrierT] = default_setter,
    ) -> None:
        return None

    @property
    def fields(self) -> Set[str]:
        return set()


class ProviderCategory(str, Enum):
    TRACER = "tracer"
    METER = "meter"
    LOGGER = "logger"
    PROPAGATOR = "propagator"


class RegistryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


_NOOP_FACTORIES: Dict[ProviderCategory, Callable[[], Any]] = {
    ProviderCategory.TRACER: trace.NoOpTracerProvider,
    ProviderCategory.METER: metrics.NoOpMeterProvider,
    ProviderCategory.LOGGER: otel_logs.NoOpLoggerProvider,
    ProviderCategory.PROPAGATOR: NoOpTextMapPropagator,
}

_NOOP_TYPES = tuple(_NOOP_FACTORIES.values())


def is_noop(provider: Any) -> bool:
    """Check if provider is one of the no-op variants."""
    return isinstance(provider, _NOOP_TYPES)


@dataclass(frozen=True)
class ProviderBundle:
    """One provider per category. All four slots are always populated."""

    tracer_provider: trace.TracerProvider
    meter_provider: metrics.MeterProvider
    logger_provider: otel_logs.LoggerProvider
    propagator: TextMapPropagator

    @classmethod
    def noop(cls) -> "ProviderBundle":
        return cls(
            tracer_provider=trace.NoOpTracerProvider(),
            meter_provider=metrics.NoOpMeterProvider(),
            logger_provider=otel_logs.NoOpLoggerProvider(),
            propagator=NoOpTextMapPropagator(),
        )

    def get(self, category: ProviderCategory) -> Any:
        return getattr(self, _BUNDLE_FIELDS[category])


_BUNDLE_FIELDS: Dict[ProviderCategory, str] = {
    ProviderCategory.TRACER: "tracer_provider",
    ProviderCategory.METER: "meter_provider",
    ProviderCategory.LOGGER: "logger_provider",
    ProviderCategory.PROPAGATOR: "propagator",
}


class ProviderRegistry:
    """Registry of the active providers, defaulting to no-op."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._installed: Dict[ProviderCategory, Any] = {}
        self._defaults: Dict[ProviderCategory, Any] = {}

    @property
    def state(self) -> RegistryState:
        with self._lock:
            if self._installed:
                return RegistryState.INITIALIZED
            return RegistryState.UNINITIALIZED

    def get(self, category: ProviderCategory) -> Any:
        """Get the current provider for category. Never fails."""
        category = ProviderCategory(category)
        with self._lock:
            provider = self._installed.get(category)
            if provider is not None:
                return provider
            provider = self._defaults.get(category)
            if provider is None:
                provider = _NOOP_FACTORIES[category]()
                self._defaults[category] = provider
            return provider

    def set(self, category: ProviderCategory, provider: Any) -> None:
        """Install provider for category. Last write wins."""
        category = ProviderCategory(category)
        if provider is None:
            raise ValueError(f"Cannot install None as the {category.value} provider")
        with self._lock:
            self._installed[category] = provider
        logger.debug(f"Installed {category.value} provider: {type(provider).__name__}")

    def install(self, bundle: ProviderBundle) -> None:
        """Install every slot of bundle at once."""
        with self._lock:
            for category in ProviderCategory:
                self.set(category, bundle.get(category))

    def bundle(self) -> ProviderBundle:
        """Snapshot of the current providers."""
        with self._lock:
            return ProviderBundle(
                tracer_provider=self.get(ProviderCategory.TRACER),
                meter_provider=self.get(ProviderCategory.METER),
                logger_provider=self.get(ProviderCategory.LOGGER),
                propagator=self.get(ProviderCategory.PROPAGATOR),
            )

    def reset(self) -> None:
        """Forget all installed and cached providers."""
        with self._lock:
            self._installed.clear()
            self._defaults.clear()


def publish_to_api_globals(registry: ProviderRegistry) -> None:
    """Mirror the registry's live providers into the opentelemetry API globals.

    The API only accepts one tracer/meter/logger provider per process; later
    calls are ignored by the API with a warning.
    """
    tracer_provider = registry.get(ProviderCategory.TRACER)
    if not is_noop(tracer_provider):
        trace.set_tracer_provider(tracer_provider)

    meter_provider = registry.get(ProviderCategory.METER)
    if not is_noop(meter_provider):
        metrics.set_meter_provider(meter_provider)

    logger_provider = registry.get(ProviderCategory.LOGGER)
    if not is_noop(logger_provider):
        otel_logs.set_logger_provider(logger_provider)

    propagator = registry.get(ProviderCategory.PROPAGATOR)
    if not is_noop(propagator):
        propagate.set_global_textmap(propagator)


# Process-global registry
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    return _registry


def get_tracer_provider() -> trace.TracerProvider:
    return _registry.get(ProviderCategory.TRACER)


def get_meter_provider() -> metrics.MeterProvider:
    return _registry.get(ProviderCategory.METER)


def get_logger_provider() -> otel_logs.LoggerProvider:
    return _registry.get(ProviderCategory.LOGGER)


def get_propagator() -> TextMapPropagator:
    return _registry.get(ProviderCategory.PROPAGATOR)


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer from the current tracer provider."""
    return get_tracer_provider().get_tracer(name)


def get_meter(name: str) -> metrics.Meter:
    """Get a meter from the current meter provider."""
    return get_meter_provider().get_meter(name)


def inject_context(carrier: Dict[str, str], context: Optional[Context] = None) -> Dict[str, str]:
    """Inject trace context into a carrier (e.g., HTTP headers) for propagation."""
    get_propagator().inject(carrier, context=context)
    return carrier


def extract_context(carrier: Dict[str, str], context: Optional[Context] = None) -> Context:
    """Extract trace context from a carrier (e.g., HTTP headers)."""
    return get_propagator().extract(carrier, context=context)
