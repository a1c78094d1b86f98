"""
Configuration for the autoload gate.

Settings come from standard OTEL_* environment variables through pydantic
BaseSettings. Boolean flags only accept the literals "true"/"false"
(case-insensitive); anything else falls back to the field default and logs a
warning instead of failing the whole settings object.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from otel_autoload.errors import ConfigurationUnrecognized
from otel_autoload.exclusion import ExclusionRuleSet

logger = logging.getLogger(__name__)


def get_log_level(level: Optional[str] = None) -> int:
    """Get the configured log level as a logging constant.

    Uses level if given, else the LOG_LEVEL env var, and converts to
    logging.DEBUG/INFO/etc. Defaults to INFO if not set or invalid.
    """
    level_str = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level_map = {
        "TRACE": logging.DEBUG,  # Python doesn't have TRACE
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return level_map.get(level_str, logging.INFO)


def parse_bool_literal(name: str, value: Any) -> bool:
    """Parse a boolean configuration literal.

    Raises:
        ConfigurationUnrecognized: if value is not "true" or "false"
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    raise ConfigurationUnrecognized(name, value)


def split_list(value: str) -> List[str]:
    """Split a comma-separated value, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class ActivationFlags:
    """The two flags the activation decision is made from."""

    autoload_enabled: bool
    sdk_disabled: bool


class AutoloadSettings(BaseSettings):
    """Autoload configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", extra="ignore"
    )

    # Gate flags
    otel_python_autoload_enabled: bool = False
    otel_sdk_disabled: bool = False

    # Comma-separated regex fragments matched against the request path+query
    otel_python_excluded_urls: str = ""

    # Provider construction
    otel_propagators: str = "tracecontext,baggage"
    otel_traces_exporter: str = "otlp"
    otel_metrics_exporter: str = "otlp"
    otel_logs_exporter: str = "otlp"
    otel_python_log_export_enabled: bool = True

    # Also publish live providers into the opentelemetry API globals
    otel_python_autoload_set_globals: bool = False

    log_level: str = "INFO"

    @field_validator(
        "otel_python_autoload_enabled",
        "otel_sdk_disabled",
        "otel_python_log_export_enabled",
        "otel_python_autoload_set_globals",
        mode="before",
    )
    @classmethod
    def _parse_flag(cls, value: Any, info: ValidationInfo) -> bool:
        default = cls.model_fields[info.field_name].default
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        try:
            return parse_bool_literal(info.field_name.upper(), value)
        except ConfigurationUnrecognized as e:
            logger.warning(f"{e}; using {str(default).lower()}")
            return default

    @property
    def flags(self) -> ActivationFlags:
        return ActivationFlags(
            autoload_enabled=self.otel_python_autoload_enabled,
            sdk_disabled=self.otel_sdk_disabled,
        )

    @property
    def excluded_url_rules(self) -> ExclusionRuleSet:
        return ExclusionRuleSet.from_string(self.otel_python_excluded_urls)

    @property
    def propagator_names(self) -> List[str]:
        return [name.lower() for name in split_list(self.otel_propagators)]
