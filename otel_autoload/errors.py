"""
Error types for the autoload gate.

None of these ever escape autoload(): they are caught at the boundary, logged,
and the affected telemetry stays no-op.
"""

from typing import Any


class AutoloadError(Exception):
    """Base class for otel_autoload errors."""


class ConfigurationUnrecognized(AutoloadError):
    """A configuration value could not be interpreted (e.g. a malformed boolean)."""

    def __init__(self, name: str, value: Any):
        self.name = name
        self.value = value
        super().__init__(f"Unrecognized value for {name}: {value!r}")


class PatternEvaluationError(AutoloadError):
    """An exclusion rule is not a valid regular expression."""

    def __init__(self, rule: str, reason: str):
        self.rule = rule
        self.reason = reason
        super().__init__(f"Invalid excluded URL pattern {rule!r}: {reason}")
