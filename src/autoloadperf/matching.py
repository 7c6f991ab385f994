"""Route resolution: first matching pattern wins, in declaration order."""

from __future__ import annotations

from functools import cache
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autoloadperf.config import RouteConfig


@cache
def _compile_wildcard(pattern: str) -> re.Pattern[str]:
    """Compile a ``*`` wildcard pattern into an anchored regex."""
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$")


def pattern_matches(pattern: str, path: str) -> bool:
    """Return True when ``path`` satisfies ``pattern``.

    The pattern's syntax selects the rule:

    - ``/...``: ``path`` ends with the pattern
    - ``http...``: exact equality
    - contains ``*``: anchored regex, each ``*`` matching any run of characters
    - anything else: ``path`` contains the pattern
    """
    if pattern.startswith("/"):
        return path.endswith(pattern)
    if pattern.startswith("http"):
        return path == pattern
    if "*" in pattern:
        return _compile_wildcard(pattern).match(path) is not None
    return pattern in path


class PatternMatcher:
    """Resolves a request path to its route configuration."""

    def __init__(self, routes: Sequence[RouteConfig]) -> None:
        self._routes = tuple(routes)

    @property
    def routes(self) -> tuple[RouteConfig, ...]:
        return self._routes

    def resolve(self, path: str) -> RouteConfig | None:
        """Return the first route whose pattern matches, or None."""
        for route in self._routes:
            if pattern_matches(route.pattern, path):
                return route
        return None
