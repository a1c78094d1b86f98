"""
SDK autoloader.

Decides once per process whether OpenTelemetry should activate and installs the
resulting providers into the registry.

Key design:
- Two-state machine (NOT_RUN -> EVALUATED) guarded by a lock, so concurrent
  first calls never build providers twice
- OTEL_PYTHON_AUTOLOAD_ENABLED gates everything; unrecognized values mean off
- OTEL_SDK_DISABLED keeps propagation alive but leaves tracer/meter/logger no-op
- Requests matching OTEL_PYTHON_EXCLUDED_URLS get no live providers at all
- Nothing raises out of autoload(); failures leave telemetry no-op
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, List, Optional

from opentelemetry.sdk._logs import LoggingHandler

from otel_autoload.config import AutoloadSettings, get_log_level
from otel_autoload.exclusion import ExclusionRuleSet, is_excluded
from otel_autoload.providers import ProviderFactory, SdkProviderFactory
from otel_autoload.registry import (
    ProviderCategory,
    ProviderRegistry,
    get_registry,
    is_noop,
    publish_to_api_globals,
)
from otel_autoload.request import current_request_url

logger = logging.getLogger(__name__)


class AutoloadState(str, Enum):
    NOT_RUN = "not_run"
    EVALUATED = "evaluated"


class AutoloadLoggingHandler(LoggingHandler):
    """LoggingHandler that adds the logger name as an explicit attribute.

    The standard LoggingHandler uses logger name for InstrumentationScope but
    excludes it from log record attributes. This subclass adds it back as
    'logger_name' for log viewers that only show attributes.
    """

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "logger_name"):
            record.logger_name = record.name
        super().emit(record)


class SdkAutoloader:
    """One-shot activation gate for the OpenTelemetry SDK.

    Example:
        autoloader = SdkAutoloader()
        if autoloader.autoload():
            logger.info("telemetry opted in")
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        settings_loader: Callable[[], AutoloadSettings] = AutoloadSettings,
        factory_builder: Callable[[AutoloadSettings], ProviderFactory] = SdkProviderFactory,
        url_source: Callable[[], Optional[str]] = current_request_url,
    ):
        self.registry = registry if registry is not None else get_registry()
        self._settings_loader = settings_loader
        self._factory_builder = factory_builder
        self._url_source = url_source
        self._lock = threading.Lock()
        self._state = AutoloadState.NOT_RUN
        self._live_providers: List[Any] = []
        self._log_handler: Optional[logging.Handler] = None
        # Rules captured by the last enabled evaluation
        self._rules: Optional[ExclusionRuleSet] = None

    @property
    def state(self) -> AutoloadState:
        return self._state

    def has_run(self) -> bool:
        return self._state is AutoloadState.EVALUATED

    def _load_settings(self) -> Optional[AutoloadSettings]:
        try:
            return self._settings_loader()
        except Exception as e:
            logger.warning(f"OpenTelemetry autoload config error: {e}")
            return None

    def autoload(self) -> bool:
        """Run the activation decision.

        Returns:
            True if OTEL_PYTHON_AUTOLOAD_ENABLED opted in, whether or not the SDK
            ended up recording. False if disabled or already evaluated.
        """
        with self._lock:
            if self._state is AutoloadState.EVALUATED:
                return False
            try:
                return self._evaluate()
            finally:
                self._state = AutoloadState.EVALUATED

    def _evaluate(self) -> bool:
        settings = self._load_settings()
        if settings is None or not settings.flags.autoload_enabled:
            logger.debug("OpenTelemetry autoload disabled (OTEL_PYTHON_AUTOLOAD_ENABLED!=true)")
            return False

        self._rules = settings.excluded_url_rules
        try:
            if self._is_ignored_url(settings):
                logger.debug("OpenTelemetry autoload skipped: request URL is excluded")
                return True
            self._install(settings)
        except Exception as e:
            logger.warning(f"OpenTelemetry autoload failed, telemetry stays disabled: {e}")
            self._teardown()
            self.registry.reset()
        return True

    def _install(self, settings: AutoloadSettings) -> None:
        factory = self._factory_builder(settings)

        if settings.flags.sdk_disabled:
            self.registry.set(ProviderCategory.PROPAGATOR, factory.create_propagator())
            logger.info("OpenTelemetry SDK disabled (OTEL_SDK_DISABLED=true), propagation only")
        else:
            bundle = factory.create_bundle()
            self.registry.install(bundle)
            self._live_providers = [
                bundle.tracer_provider,
                bundle.meter_provider,
                bundle.logger_provider,
            ]
            if settings.otel_python_log_export_enabled and not is_noop(bundle.logger_provider):
                self._log_handler = AutoloadLoggingHandler(
                    level=get_log_level(settings.log_level), logger_provider=bundle.logger_provider
                )
                logging.getLogger().addHandler(self._log_handler)
            logger.info(
                f"OpenTelemetry autoloaded (traces: {settings.otel_traces_exporter}, "
                f"metrics: {settings.otel_metrics_exporter}, logs: {settings.otel_logs_exporter})"
            )

        if settings.otel_python_autoload_set_globals:
            publish_to_api_globals(self.registry)

    def _is_ignored_url(self, settings: AutoloadSettings) -> bool:
        return is_excluded(settings.excluded_url_rules, self._url_source())

    def is_ignored_url(self) -> bool:
        """Check the current request URL against OTEL_PYTHON_EXCLUDED_URLS.

        Always False outside a request. Uses the rules captured by autoload()
        when it opted in; otherwise reads them from the environment.
        """
        url = self._url_source()
        if url is None:
            return False

        rules = self._rules
        if rules is None:
            settings = self._load_settings()
            if settings is None:
                return False
            rules = settings.excluded_url_rules

        try:
            return is_excluded(rules, url)
        except Exception as e:
            logger.warning(f"Excluded URL check failed for {url!r}: {e}")
            return False

    def is_excluded_request(self, url: Optional[str]) -> bool:
        """Check url against the rules captured when autoload() opted in.

        False before autoload() has run or when it found autoload disabled.
        """
        rules = self._rules
        return rules is not None and is_excluded(rules, url)

    def shutdown(self) -> None:
        """Flush and shut down the live providers this autoloader installed."""
        for provider in self._live_providers:
            shutdown = getattr(provider, "shutdown", None)
            if shutdown is None:
                continue
            try:
                shutdown()
            except Exception as e:
                logger.warning(f"Failed to shut down {type(provider).__name__}: {e}")
        self._live_providers = []

    def _teardown(self) -> None:
        if self._log_handler is not None:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler = None
        self.shutdown()

    def reset(self) -> None:
        """Return to NOT_RUN and reset the registry. Intended for tests."""
        with self._lock:
            self._teardown()
            self._rules = None
            self._state = AutoloadState.NOT_RUN
            self.registry.reset()


# Process-global autoloader bound to the process-global registry
_autoloader = SdkAutoloader()


def get_autoloader() -> SdkAutoloader:
    return _autoloader


def autoload() -> bool:
    return _autoloader.autoload()


def is_ignored_url() -> bool:
    return _autoloader.is_ignored_url()


def has_run() -> bool:
    return _autoloader.has_run()


def shutdown() -> None:
    _autoloader.shutdown()


def reset() -> None:
    _autoloader.reset()
