"""
OpenTelemetry autoload gate.

Decides once per process whether the OpenTelemetry SDK should activate:
- OTEL_PYTHON_AUTOLOAD_ENABLED=true opts in (anything else keeps everything no-op)
- OTEL_SDK_DISABLED=true keeps context propagation but no tracer/meter/logger
- OTEL_PYTHON_EXCLUDED_URLS suppresses telemetry for matching requests

Instrumented code reads providers through the registry accessors below.
"""

from otel_autoload.autoloader import (
    AutoloadState,
    SdkAutoloader,
    autoload,
    get_autoloader,
    has_run,
    is_ignored_url,
    reset,
    shutdown,
)
from otel_autoload.config import ActivationFlags, AutoloadSettings
from otel_autoload.errors import AutoloadError, ConfigurationUnrecognized, PatternEvaluationError
from otel_autoload.exclusion import ExclusionRule, ExclusionRuleSet, is_excluded
from otel_autoload.registry import (
    NoOpTextMapPropagator,
    ProviderBundle,
    ProviderCategory,
    ProviderRegistry,
    extract_context,
    get_logger_provider,
    get_meter,
    get_meter_provider,
    get_propagator,
    get_registry,
    get_tracer,
    get_tracer_provider,
    inject_context,
    is_noop,
)
from otel_autoload.request import current_request_url, request_context

__all__ = [
    # Autoloader
    "AutoloadState",
    "SdkAutoloader",
    "autoload",
    "get_autoloader",
    "has_run",
    "is_ignored_url",
    "reset",
    "shutdown",
    # Configuration
    "ActivationFlags",
    "AutoloadSettings",
    # Errors
    "AutoloadError",
    "ConfigurationUnrecognized",
    "PatternEvaluationError",
    # Exclusion
    "ExclusionRule",
    "ExclusionRuleSet",
    "is_excluded",
    # Registry
    "NoOpTextMapPropagator",
    "ProviderBundle",
    "ProviderCategory",
    "ProviderRegistry",
    "extract_context",
    "get_logger_provider",
    "get_meter",
    "get_meter_provider",
    "get_propagator",
    "get_registry",
    "get_tracer",
    "get_tracer_provider",
    "inject_context",
    "is_noop",
    # Request context
    "current_request_url",
    "request_context",
]
