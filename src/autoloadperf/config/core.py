# src/autoloadperf/config/core.py

"""Option schema and resolution for the resource-hint optimizer.

This module implements a two-layer design:
- Immutable runtime payloads (``OptimizerOptions``, ``RouteConfig`` and the
  small value types they own) that flow through the pipeline unchanged
- A Pydantic schema wall (``OptionsSchema``, ``Settings``) that validates
  plain mappings coming from callers, ``pyproject.toml`` or the environment

Resolve once, freeze, then flow: nothing downstream of ``ResourceOptimizer``
mutates options.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
import re
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
import soupsieve

from autoloadperf.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_MAX_PRELOADS,
    DEFAULT_MINIFY_OPTIONS,
    PRIORITIES,
)
from autoloadperf.errors import ConfigurationError

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

Priority = Literal["auto", "high", "low"]
Loading = Literal["eager", "lazy"]
DocumentTransform = Callable[["BeautifulSoup"], None]
M = TypeVar("M", bound=BaseModel)


# --- Runtime payloads (frozen) ---


def _require_text(value: Any, name: str, hint: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{name} must be a non-empty string", hint=hint)


def _require_priority(value: Any, name: str) -> None:
    if value is not None and value not in PRIORITIES:
        raise ConfigurationError(
            f"{name} must be one of {PRIORITIES}, got {value!r}",
            hint="Use 'high' for render-critical resources, 'low' otherwise.",
        )


def _require_ttl(value: Any, name: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ConfigurationError(
            f"{name} must be a non-negative number of seconds, got {value!r}",
            hint="Pass ttl=None for entries that never expire.",
        )


@dataclass(frozen=True)
class PreloadResource:
    """A resource the route always preloads, in declaration order."""

    url: str
    as_: str
    #: Rendered as ``fetchpriority`` on the emitted link.
    priority: Priority | None = None

    def __post_init__(self) -> None:
        """Validate resource shape early for clear errors."""
        _require_text(self.url, "preload url", "Pass url='/static/app.css'.")
        _require_text(self.as_, "preload as_", "Pass as_='style', 'script', 'font'...")
        _require_priority(self.priority, "preload priority")


@dataclass(frozen=True)
class PrefetchResource:
    """A resource the route prefetches for the next navigation."""

    url: str
    as_: str | None = None

    def __post_init__(self) -> None:
        """Validate resource shape early for clear errors."""
        _require_text(self.url, "prefetch url", "Pass url='/static/next.js'.")


@dataclass(frozen=True)
class RouteCacheOptions:
    """Per-route override of the result cache policy."""

    enabled: bool
    ttl: float | None = None

    def __post_init__(self) -> None:
        """Validate the TTL."""
        _require_ttl(self.ttl, "route cache ttl")


@dataclass(frozen=True)
class CacheOptions:
    """Global result cache policy."""

    enabled: bool = False
    max_size: int = DEFAULT_CACHE_MAX_SIZE
    #: Fallback TTL when a route enables caching without its own TTL.
    ttl: float | None = None

    def __post_init__(self) -> None:
        """Validate bounds."""
        if (
            isinstance(self.max_size, bool)
            or not isinstance(self.max_size, int)
            or self.max_size < 1
        ):
            raise ConfigurationError(
                f"cache max_size must be ≥ 1, got {self.max_size!r}",
                hint="This bounds how many optimized pages are kept in memory.",
            )
        _require_ttl(self.ttl, "cache ttl")


@dataclass(frozen=True)
class LCPConfig:
    """Selector rule locating the route's largest-contentful-paint image."""

    selector: str
    #: Substring (``str``) or regex (``re.Pattern``) the image ``src`` must match.
    url: str | re.Pattern[str] | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)
    loading: Loading = "eager"
    fetchpriority: Priority = "high"

    def __post_init__(self) -> None:
        """Validate the selector rule."""
        _require_text(self.selector, "lcp selector", "Pass selector='.hero img'.")
        try:
            soupsieve.compile(self.selector)
        except soupsieve.SelectorSyntaxError as e:
            raise ConfigurationError(
                f"lcp selector is not valid CSS: {self.selector!r}",
                hint="Use a CSS selector such as 'main img.hero'.",
            ) from e
        _require_priority(self.fetchpriority, "lcp fetchpriority")
        if self.loading not in ("eager", "lazy"):
            raise ConfigurationError(
                f"lcp loading must be 'eager' or 'lazy', got {self.loading!r}"
            )

    def matches(self, src: str) -> bool:
        """Return True when an image source satisfies this rule."""
        if self.url is None:
            return True
        if isinstance(self.url, re.Pattern):
            return self.url.search(src) is not None
        return self.url in src


@dataclass(frozen=True)
class FCPOptimizations:
    """First-contentful-paint rewrites for a route."""

    critical_styles: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        """Normalize critical styles to a tuple."""
        if self.critical_styles is not None:
            object.__setattr__(self, "critical_styles", tuple(self.critical_styles))


@dataclass(frozen=True)
class MinifyOptions:
    """Minifier policy; ``options`` is forwarded verbatim to the minifier."""

    enabled: bool = False
    options: Mapping[str, Any] = field(
        default_factory=lambda: dict(DEFAULT_MINIFY_OPTIONS)
    )


@dataclass(frozen=True)
class RouteConfig:
    """Per-pattern override of hint behaviour and caching policy."""

    pattern: str
    lcp: LCPConfig | None = None
    preload_resources: tuple[PreloadResource, ...] = ()
    prefetch_resources: tuple[PrefetchResource, ...] = ()
    prefetch_routes: tuple[str, ...] = ()
    cache: RouteCacheOptions | None = None
    #: Invoked once, last, with the mutable parsed document.
    custom_transform: DocumentTransform | None = None
    fcp_optimizations: FCPOptimizations | None = None

    def __post_init__(self) -> None:
        """Validate the pattern and freeze sequence fields."""
        _require_text(
            self.pattern, "route pattern", "Use '/path', 'http...', '*.html' or a substring."
        )
        object.__setattr__(self, "preload_resources", tuple(self.preload_resources))
        object.__setattr__(self, "prefetch_resources", tuple(self.prefetch_resources))
        object.__setattr__(self, "prefetch_routes", tuple(self.prefetch_routes))
        if self.custom_transform is not None and not callable(self.custom_transform):
            raise ConfigurationError(
                "custom_transform must be callable",
                hint="Pass a function taking the parsed BeautifulSoup document.",
            )


RoutesInput = Sequence[RouteConfig] | Mapping[str, "RouteConfig | Mapping[str, Any]"]


@dataclass(frozen=True)
class OptimizerOptions:
    """Immutable global options for a ``ResourceOptimizer``.

    ``pages`` is an ordered sequence: pattern matching is first-match-wins in
    declaration order. A mapping is accepted and converted in insertion order.

    Example:
        options = OptimizerOptions(
            max_preloads=3,
            cache=CacheOptions(enabled=True),
            pages={"/home": RouteConfig("/home", cache=RouteCacheOptions(True, 60))},
        )
    """

    preconnect: bool = True
    prefetch: bool = True
    preload: bool = True
    #: Reserved; accepted but not consumed by ordering.
    priority: Priority = "auto"
    max_preloads: int = DEFAULT_MAX_PRELOADS
    cache: CacheOptions = field(default_factory=CacheOptions)
    pages: tuple[RouteConfig, ...] = ()
    minify: MinifyOptions = field(default_factory=MinifyOptions)

    def __post_init__(self) -> None:
        """Normalize pages and validate numeric fields."""
        _require_priority(self.priority, "priority")
        if (
            isinstance(self.max_preloads, bool)
            or not isinstance(self.max_preloads, int)
            or self.max_preloads < 1
        ):
            raise ConfigurationError(
                f"max_preloads must be ≥ 1, got {self.max_preloads!r}",
                hint="This caps discovered preloads and prefetches per page.",
            )
        object.__setattr__(self, "pages", _normalize_routes(self.pages))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OptimizerOptions:
        """Build options from a plain nested mapping.

        Keys may be snake_case or camelCase (``maxPreloads``,
        ``preloadResources``...). ``pages`` keeps its insertion order.

        Raises:
            ConfigurationError: If the mapping fails schema validation.
        """
        schema = _validate(OptionsSchema, data)
        return schema.freeze()


def _normalize_routes(pages: Any) -> tuple[RouteConfig, ...]:
    if isinstance(pages, Mapping):
        routes: list[RouteConfig] = []
        for pattern, route in pages.items():
            if isinstance(route, RouteConfig):
                routes.append(
                    route if route.pattern == pattern else replace(route, pattern=pattern)
                )
            elif isinstance(route, Mapping):
                routes.append(_validate(RouteSchema, route).freeze(pattern))
            else:
                raise ConfigurationError(
                    f"pages[{pattern!r}] must be a RouteConfig or mapping",
                    hint="Pass pages={'/home': RouteConfig('/home', ...)}.",
                )
        return tuple(routes)
    routes_tuple = tuple(pages)
    for route in routes_tuple:
        if not isinstance(route, RouteConfig):
            raise ConfigurationError(
                f"Expected RouteConfig, got {type(route).__name__}",
                hint="Use an ordered list of RouteConfig or a pattern mapping.",
            )
    return routes_tuple


# --- Schema (Pydantic wall) ---


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class PreloadResourceSchema(_Schema):
    url: str = Field(min_length=1)
    as_: str = Field(alias="as", min_length=1)
    priority: Priority | None = None


class PrefetchResourceSchema(_Schema):
    url: str = Field(min_length=1)
    as_: str | None = Field(default=None, alias="as")


class RouteCacheSchema(_Schema):
    enabled: bool
    ttl: float | None = Field(default=None, ge=0)


class LCPSchema(_Schema):
    selector: str = Field(min_length=1)
    url: str | re.Pattern[str] | None = Field(default=None, union_mode="left_to_right")
    attributes: dict[str, str] = Field(default_factory=dict)
    loading: Loading = "eager"
    fetchpriority: Priority = "high"


class FCPSchema(_Schema):
    critical_styles: list[str] | None = None


class RouteSchema(_Schema):
    """Schema for one entry of the ``pages`` mapping."""

    lcp_config: LCPSchema | None = None
    preload_resources: list[PreloadResourceSchema] = Field(default_factory=list)
    prefetch_resources: list[PrefetchResourceSchema] = Field(default_factory=list)
    prefetch_routes: list[str] = Field(default_factory=list)
    cache: RouteCacheSchema | None = None
    custom_transform: Callable[..., Any] | None = None
    fcp_optimizations: FCPSchema | None = None

    def freeze(self, pattern: str) -> RouteConfig:
        lcp = self.lcp_config
        return RouteConfig(
            pattern=pattern,
            lcp=LCPConfig(
                selector=lcp.selector,
                url=lcp.url,
                attributes=dict(lcp.attributes),
                loading=lcp.loading,
                fetchpriority=lcp.fetchpriority,
            )
            if lcp is not None
            else None,
            preload_resources=tuple(
                PreloadResource(r.url, r.as_, r.priority) for r in self.preload_resources
            ),
            prefetch_resources=tuple(
                PrefetchResource(r.url, r.as_) for r in self.prefetch_resources
            ),
            prefetch_routes=tuple(self.prefetch_routes),
            cache=RouteCacheOptions(self.cache.enabled, self.cache.ttl)
            if self.cache is not None
            else None,
            custom_transform=self.custom_transform,
            fcp_optimizations=FCPOptimizations(self.fcp_optimizations.critical_styles)
            if self.fcp_optimizations is not None
            else None,
        )


class CacheSchema(_Schema):
    enabled: bool = False
    max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, ge=1)
    ttl: float | None = Field(default=None, ge=0)


class MinifySchema(_Schema):
    enabled: bool = False
    options: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_MINIFY_OPTIONS))


class OptionsSchema(_Schema):
    """Schema for the full configuration surface accepted by ``from_mapping``."""

    preconnect: bool = True
    prefetch: bool = True
    preload: bool = True
    priority: Priority = "auto"
    max_preloads: int = Field(default=DEFAULT_MAX_PRELOADS, ge=1)
    cache: CacheSchema = Field(default_factory=CacheSchema)
    pages: dict[str, RouteSchema] = Field(default_factory=dict)
    minify: MinifySchema = Field(default_factory=MinifySchema)

    def freeze(self) -> OptimizerOptions:
        return OptimizerOptions(
            preconnect=self.preconnect,
            prefetch=self.prefetch,
            preload=self.preload,
            priority=self.priority,
            max_preloads=self.max_preloads,
            cache=CacheOptions(self.cache.enabled, self.cache.max_size, self.cache.ttl),
            pages=tuple(route.freeze(pattern) for pattern, route in self.pages.items()),
            minify=MinifyOptions(self.minify.enabled, dict(self.minify.options)),
        )


class Settings(BaseModel):
    """Flat scalar settings resolvable from files and the environment.

    This is the single source of truth for layered (non-route) fields and
    their defaults.
    """

    preconnect: bool = True
    prefetch: bool = True
    preload: bool = True
    priority: Priority = "auto"
    max_preloads: int = Field(default=DEFAULT_MAX_PRELOADS, ge=1)
    cache_enabled: bool = False
    cache_max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, ge=1)
    cache_ttl: float | None = Field(default=None, ge=0)
    minify_enabled: bool = False

    model_config = {"extra": "forbid"}


def _validate(schema: type[M], data: Any) -> M:
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        # Extract first error for clarity
        err = e.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg") or "invalid value"
        if msg.startswith("Value error, "):
            msg = msg[13:]
        raise ConfigurationError(
            f"Option validation failed at {loc or '<root>'}: {msg}",
            hint="Check key spelling; snake_case and camelCase keys are accepted.",
        ) from e


# --- Public resolution API ---

_DOTENV_LOADED: bool = False


def _try_load_dotenv() -> None:
    """Load a .env file once so AUTOLOADPERF_* variables are visible."""
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    from dotenv import load_dotenv

    load_dotenv()
    _DOTENV_LOADED = True


def resolve_options(
    overrides: Mapping[str, Any] | None = None,
    *,
    pages: RoutesInput | None = None,
) -> OptimizerOptions:
    """Resolve scalar settings from all sources into ``OptimizerOptions``.

    Precedence: defaults < pyproject ``[tool.autoloadperf]`` < env < overrides.
    Routes come from ``pages`` when given, otherwise from the
    ``[tool.autoloadperf.pages]`` tables in file order.

    Raises:
        ConfigurationError: If any layer fails validation.
    """
    _try_load_dotenv()

    from .loaders import load_env, load_pyproject

    project = dict(load_pyproject())
    project_pages = project.pop("pages", {})
    merged = {**project, **load_env(), **(overrides or {})}
    settings = _validate(Settings, merged)

    if pages is None:
        if not isinstance(project_pages, Mapping):
            raise ConfigurationError(
                "[tool.autoloadperf.pages] must be a table of pattern tables"
            )
        pages = project_pages

    return OptimizerOptions(
        preconnect=settings.preconnect,
        prefetch=settings.prefetch,
        preload=settings.preload,
        priority=settings.priority,
        max_preloads=settings.max_preloads,
        cache=CacheOptions(
            enabled=settings.cache_enabled,
            max_size=settings.cache_max_size,
            ttl=settings.cache_ttl,
        ),
        pages=pages,
        minify=MinifyOptions(enabled=settings.minify_enabled),
    )
