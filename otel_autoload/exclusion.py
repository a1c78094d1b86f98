"""
URL exclusion rules.

Each rule is an unanchored, case-sensitive regular expression searched in the
path and query of the current request URL. A request matching any rule gets no
telemetry. A malformed rule is reported and skipped; it never disables the
remaining rules.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator, Optional, Pattern, Tuple
from urllib.parse import urlsplit

from otel_autoload.errors import PatternEvaluationError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(rule: str) -> Pattern[str]:
    return re.compile(rule)


def path_and_query(url: str) -> str:
    """Reduce a URL to its path and query string.

    Relative URLs ("/foo?bar=baz") and URLs that do not parse come back
    unchanged.
    """
    try:
        parts = urlsplit(url)
    except ValueError as e:
        logger.debug(f"Matching unparseable request URL {url!r} as-is: {e}")
        return url
    if not parts.scheme and not parts.netloc:
        return url
    if parts.query:
        return f"{parts.path}?{parts.query}"
    return parts.path


@dataclass(frozen=True)
class ExclusionRule:
    """A single exclusion pattern."""

    pattern: str

    def matches(self, target: str) -> bool:
        """Search for the pattern anywhere in target.

        Raises:
            PatternEvaluationError: if the pattern does not compile
        """
        try:
            compiled = _compile(self.pattern)
        except re.error as e:
            raise PatternEvaluationError(self.pattern, str(e)) from e
        return compiled.search(target) is not None


@dataclass(frozen=True)
class ExclusionRuleSet:
    """Ordered collection of exclusion rules; any match excludes."""

    rules: Tuple[ExclusionRule, ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "ExclusionRuleSet":
        return cls(tuple(ExclusionRule(p) for p in patterns if p))

    @classmethod
    def from_string(cls, value: str) -> "ExclusionRuleSet":
        """Build from a comma-separated list such as "client/.*/info,healthcheck"."""
        return cls.from_patterns(p.strip() for p in value.split(","))

    def __iter__(self) -> Iterator[ExclusionRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __bool__(self) -> bool:
        return bool(self.rules)


def is_excluded(rules: ExclusionRuleSet, request_url: Optional[str]) -> bool:
    """Check whether telemetry must be suppressed for request_url.

    Returns False when there is no request URL or no rules. Otherwise returns
    True on the first matching rule.
    """
    if request_url is None or not rules:
        return False

    target = path_and_query(request_url)
    for rule in rules:
        try:
            if rule.matches(target):
                logger.debug(f"Request {target} excluded by rule {rule.pattern!r}")
                return True
        except PatternEvaluationError as e:
            logger.warning(f"Skipping exclusion rule: {e}")
    return False
