"""The optimizer pipeline: route → cache → extract → synthesize → inject → minify."""

from __future__ import annotations

from collections.abc import Mapping
import logging
import time
from typing import TYPE_CHECKING, Any

from autoloadperf.cache import ResultCache
from autoloadperf.config import OptimizerOptions
from autoloadperf.document import ends_inside_markup, parse_document
from autoloadperf.extraction import existing_hints, extract_domains
from autoloadperf.hints import synthesize_hints
from autoloadperf.injector import inject_hints
from autoloadperf.matching import PatternMatcher
from autoloadperf.minify import minify_html
from autoloadperf.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Callable

    from autoloadperf.config import RouteConfig
    from autoloadperf.telemetry import Telemetry

log = logging.getLogger(__name__)


class ResourceOptimizer:
    """Rewrites server-rendered HTML with resource hints.

    One instance is meant to live for the whole process: it owns the result
    cache, which is the only state shared between calls. Every call parses
    its own private document, so ``optimize`` is safe to call from several
    threads.

    Example:
        optimizer = ResourceOptimizer({"maxPreloads": 3, "pages": {"/home": {}}})
        html = optimizer.optimize(html, "/home", "example.com")
    """

    def __init__(
        self,
        options: OptimizerOptions | Mapping[str, Any] | None = None,
        *,
        telemetry: Telemetry | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the optimizer.

        Args:
            options: Frozen options, or a plain mapping validated through
                ``OptimizerOptions.from_mapping``. Defaults apply when None.
            telemetry: Optional telemetry context; defaults to a no-op or
                env-enabled context via ``TelemetryContext()``.
            clock: Optional monotonic clock for cache timestamps.

        Raises:
            ConfigurationError: If a mapping fails validation.
        """
        if options is None:
            options = OptimizerOptions()
        elif isinstance(options, Mapping):
            options = OptimizerOptions.from_mapping(options)
        self._options = options
        self._matcher = PatternMatcher(options.pages)
        self._telemetry: Telemetry = telemetry or TelemetryContext()
        self._cache: ResultCache | None = None
        if options.cache.enabled:
            self._cache = ResultCache(
                max_size=options.cache.max_size, clock=clock or time.monotonic
            )

    @property
    def options(self) -> OptimizerOptions:
        return self._options

    @property
    def cache(self) -> ResultCache | None:
        """The result cache, or None when caching is globally disabled."""
        return self._cache

    def clear_cache(self) -> None:
        """Drop every cached result."""
        if self._cache is not None:
            self._cache.clear()

    def resolve_route(self, path: str) -> RouteConfig | None:
        return self._matcher.resolve(path)

    def optimize(self, html: str, path: str, current_domain: str) -> str:
        """Return ``html`` with resource hints injected.

        Never raises: empty input, a document truncated inside a tag or
        comment, and any internal fault pass the input through unchanged.

        Args:
            html: Raw server-rendered HTML.
            path: Request path used for route matching.
            current_domain: Hostname the page is served from.
        """
        if not html or not html.strip():
            return html
        if ends_inside_markup(html):
            log.debug("Document for %r ends inside markup; passing through", path)
            return html
        try:
            return self._optimize(html, path, current_domain)
        except Exception as exc:
            log.warning("Optimization failed for %r; serving original HTML: %s", path, exc)
            return html

    def _optimize(self, html: str, path: str, current_domain: str) -> str:
        tele = self._telemetry
        with tele("optimize"):
            route = self._matcher.resolve(path)
            log.debug(
                "Resolved %r to route %r", path, route.pattern if route is not None else None
            )

            if self._cache is not None and self._cache_read_allowed(route):
                cached = self._cache.get(html)
                if cached is not None:
                    tele.count("cache.hit")
                    log.debug("Cache hit for %r", path)
                    return cached
                tele.count("cache.miss")

            soup = parse_document(html)
            with tele("synthesize"):
                domains = extract_domains(soup, current_domain)
                hints = synthesize_hints(
                    soup,
                    route,
                    domains,
                    existing_hints(soup),
                    self._options,
                    current_domain=current_domain,
                )
            tele.count("hints.emitted", len(hints))

            with tele("inject"):
                optimized = inject_hints(
                    soup,
                    hints,
                    route,
                    current_domain=current_domain,
                    preload_pictures=self._options.preload,
                )
            with tele("minify"):
                optimized = minify_html(optimized, self._options.minify)

            if self._cache is not None and self._cache_write_allowed(route):
                self._cache.set(html, optimized, self._cache_ttl(route))
            return optimized

    # Read is skipped only when the route explicitly disables caching, while
    # write requires the route to explicitly enable it.

    def _cache_read_allowed(self, route: RouteConfig | None) -> bool:
        return not (route is not None and route.cache is not None and not route.cache.enabled)

    def _cache_write_allowed(self, route: RouteConfig | None) -> bool:
        return route is not None and route.cache is not None and route.cache.enabled

    def _cache_ttl(self, route: RouteConfig | None) -> float | None:
        if route is not None and route.cache is not None and route.cache.ttl is not None:
            return route.cache.ttl
        return self._options.cache.ttl
