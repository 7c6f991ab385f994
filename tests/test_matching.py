"""Route pattern matching: syntax-selected rules, first match wins."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
import pytest

from autoloadperf.config import RouteConfig
from autoloadperf.matching import PatternMatcher, pattern_matches

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("/test", "/app/test", True),
        ("/test", "/test", True),
        ("/test", "/testing", False),
        ("*.html", "page.html", True),
        ("*.html", "page.htm", False),
        ("*.html", "page.html?x=1", False),
        ("/blog/*", "/blog/post", False),  # leading slash selects the suffix rule
        ("example", "/path/example/here", True),
        ("example", "/path/other", False),
        ("https://example.com/a", "https://example.com/a", True),
        ("https://example.com/a", "https://example.com/a/b", False),
    ],
)
def test_pattern_rules(pattern: str, path: str, expected: bool) -> None:
    """Each pattern form applies its own rule."""
    assert pattern_matches(pattern, path) is expected


def test_wildcard_escapes_other_regex_characters() -> None:
    """Only ``*`` is special; a literal dot does not match any character."""
    assert pattern_matches("*.html", "pageXhtml") is False
    assert pattern_matches("a+b*", "a+b/c") is True


def test_first_declared_match_wins() -> None:
    """Declaration order decides, not specificity."""
    general = RouteConfig("/post")
    specific = RouteConfig("/blog/post")
    matcher = PatternMatcher([general, specific])

    assert matcher.resolve("/blog/post") is general


def test_no_match_returns_none() -> None:
    """An unmatched path resolves to no route configuration."""
    matcher = PatternMatcher([RouteConfig("/home")])
    assert matcher.resolve("/about") is None
    assert PatternMatcher([]).resolve("/anything") is None


@given(st.text(alphabet="abc/.-", min_size=1, max_size=12))
def test_slash_pattern_is_suffix_match(suffix: str) -> None:
    """A ``/`` pattern matches any path it is a suffix of."""
    pattern = "/" + suffix
    assert pattern_matches(pattern, "/prefix" + pattern)
