"""
Tests for URL exclusion matching.
"""

import logging

import pytest

from otel_autoload.errors import PatternEvaluationError
from otel_autoload.exclusion import ExclusionRule, ExclusionRuleSet, is_excluded, path_and_query


class TestExclusionRuleSet:
    """Tests for building rule sets from configuration strings."""

    def test_from_string_splits_and_strips(self):
        """Test that comma lists are split with blanks dropped."""
        rules = ExclusionRuleSet.from_string(" foo , ,bar,")

        assert [rule.pattern for rule in rules] == ["foo", "bar"]

    def test_empty_string_is_empty_set(self):
        """Test that no configuration means no rules."""
        rules = ExclusionRuleSet.from_string("")

        assert len(rules) == 0
        assert not rules


class TestPathAndQuery:
    """Tests for URL reduction."""

    def test_absolute_url(self):
        assert path_and_query("https://example.com/bar?p1=2") == "/bar?p1=2"

    def test_absolute_url_without_query(self):
        assert path_and_query("https://site/client/123/info") == "/client/123/info"

    def test_relative_url_unchanged(self):
        assert path_and_query("/foo?bar=baz") == "/foo?bar=baz"


class TestIsExcluded:
    """Tests for is_excluded."""

    @pytest.mark.parametrize(
        "ignore,url,expected",
        [
            ("foo", "/foo?bar=baz", True),
            ("foo", "/bar", False),
            ("foo,bar", "https://example.com/bar?p1=2", True),
            ("foo,bar", "https://example.com/baz?p1=2", False),
            ("client/.*/info,healthcheck", "https://site/client/123/info", True),
            ("client/.*/info,healthcheck", "https://site/xyz/healthcheck", True),
        ],
    )
    def test_ignore_urls(self, ignore: str, url: str, expected: bool):
        """Test rule matching against request URLs."""
        assert is_excluded(ExclusionRuleSet.from_string(ignore), url) is expected

    def test_no_request_url(self):
        """Test that nothing is excluded without a request."""
        assert is_excluded(ExclusionRuleSet.from_string(".*"), None) is False

    def test_empty_rules(self):
        """Test that an empty rule set excludes nothing."""
        assert is_excluded(ExclusionRuleSet(), "/anything") is False

    def test_case_sensitive(self):
        """Test that matching is case-sensitive."""
        assert is_excluded(ExclusionRuleSet.from_string("Health"), "/health") is False

    def test_host_is_not_matched(self):
        """Test that only path and query are searched."""
        assert is_excluded(ExclusionRuleSet.from_string("example"), "https://example.com/x") is False

    def test_query_is_matched(self):
        """Test that the query string is part of the searched text."""
        assert is_excluded(ExclusionRuleSet.from_string("debug=1"), "/page?debug=1") is True


class TestMalformedRules:
    """Tests for invalid regular expressions in rules."""

    def test_rule_raises_pattern_error(self):
        """Test that a malformed rule reports a PatternEvaluationError."""
        rule = ExclusionRule("*")

        with pytest.raises(PatternEvaluationError) as exc_info:
            rule.matches("/foo")

        assert exc_info.value.rule == "*"

    def test_bad_rule_does_not_defeat_others(self, caplog):
        """Test that evaluation continues past a malformed rule."""
        rules = ExclusionRuleSet.from_string("*,healthcheck")

        with caplog.at_level(logging.WARNING, logger="otel_autoload.exclusion"):
            assert is_excluded(rules, "/healthcheck") is True

        assert "Invalid excluded URL pattern" in caplog.text

    def test_only_bad_rules(self):
        """Test that a set of only malformed rules excludes nothing."""
        assert is_excluded(ExclusionRuleSet.from_string("*,(unclosed"), "/foo") is False


class TestUnparseableUrls:
    """Tests for request URLs that urlsplit rejects."""

    def test_path_and_query_returns_raw_url(self):
        assert path_and_query("//[abc/foo") == "//[abc/foo"

    def test_rules_still_match_raw_url(self):
        """Test that an unparseable URL is matched as-is instead of raising."""
        assert is_excluded(ExclusionRuleSet.from_string("foo"), "//[abc/foo") is True
        assert is_excluded(ExclusionRuleSet.from_string("bar"), "//[abc/foo") is False
