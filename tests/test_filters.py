"""Unit tests for the filters module."""

from __future__ import annotations

from confwatch.core.filters import (
    has_prefix,
    iter_ancestors,
    join_key,
    matching_filter,
    strip_wildcard,
)


class TestStripWildcard:
    """Test suite for strip_wildcard."""

    def test_trailing_wildcard(self):
        assert strip_wildcard("/app/*") == "/app"

    def test_no_wildcard(self):
        assert strip_wildcard("/app/db") == "/app/db"

    def test_root(self):
        """The root wildcard and the root itself map to '/'."""
        assert strip_wildcard("/*") == "/"
        assert strip_wildcard("/") == "/"


class TestMatchingFilter:
    """Test suite for prefix matching."""

    def test_first_match_wins(self):
        assert matching_filter("/app/db/host", ["/web", "/app", "/app/db"]) == "/app"

    def test_no_match(self):
        assert matching_filter("/app/db", ["/web"]) is None
        assert has_prefix("/app/db", ["/web"]) is False

    def test_plain_string_prefix(self):
        """Matching is by string prefix, not by path segment."""
        assert has_prefix("/application", ["/app"]) is True

    def test_no_filters(self):
        assert has_prefix("/app", []) is False


class TestPaths:
    """Test suite for path helpers."""

    def test_join_key(self):
        assert join_key("/app", "db") == "/app/db"
        assert join_key("/", "app") == "/app"

    def test_ancestors(self):
        """Ancestors are listed nearest first, root excluded."""
        assert list(iter_ancestors("/a/b/c")) == ["/a/b", "/a"]

    def test_ancestors_top_level(self):
        assert list(iter_ancestors("/a")) == []
