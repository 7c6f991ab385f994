"""Hint synthesis: the ordered, de-duplicated resource hints for one document.

Synthesis runs four phases in a fixed order. Each phase consults and updates
one running de-dup state seeded from the hints the document already carries:

1. Preconnect to the busiest third-party origins
2. Explicit preloads (the route's LCP image, then its declared resources)
3. Discovered preloads (stylesheets, then render-blocking same-origin scripts)
4. Prefetches for likely next navigations

Synthesis never mutates the document; see ``autoloadperf.injector``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Literal

from autoloadperf.document import attr
from autoloadperf.extraction import (
    ExistingHints,
    anchor_paths,
    find_lcp_image,
    script_resources,
    stylesheet_resources,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from bs4 import BeautifulSoup

    from autoloadperf.config import OptimizerOptions, RouteConfig
    from autoloadperf.extraction import DomainCount

log = logging.getLogger(__name__)

HintType = Literal["preconnect", "preload", "prefetch"]


@dataclass(frozen=True)
class ResourceHint:
    """A ``<link>`` resource hint to add to the document head."""

    url: str
    type: HintType
    as_: str | None = None
    crossorigin: bool = False
    fetchpriority: str | None = None
    media: str | None = None

    def attributes(self) -> dict[str, str]:
        """Return link attributes in render order: rel, href, then optionals."""
        attrs = {"rel": self.type, "href": self.url}
        if self.as_:
            attrs["as"] = self.as_
        if self.crossorigin:
            attrs["crossorigin"] = ""
        if self.fetchpriority:
            attrs["fetchpriority"] = self.fetchpriority
        if self.media:
            attrs["media"] = self.media
        return attrs


@dataclass
class _Seen:
    preconnected: set[str] = field(default_factory=set)
    preloaded: set[str] = field(default_factory=set)
    prefetched: set[str] = field(default_factory=set)

    @classmethod
    def seeded(cls, existing: ExistingHints | None) -> _Seen:
        if existing is None:
            return cls()
        return cls(
            set(existing.preconnected), set(existing.preloaded), set(existing.prefetched)
        )


def synthesize_hints(
    soup: BeautifulSoup,
    route: RouteConfig | None,
    domains: Sequence[DomainCount],
    existing: ExistingHints | None,
    options: OptimizerOptions,
    *,
    current_domain: str,
) -> list[ResourceHint]:
    """Build the hints to inject, in phase order.

    Args:
        soup: Parsed document; read only.
        route: Matched route configuration, or None.
        domains: Ranked third-party origins from ``extract_domains``.
        existing: Hints already present in the document.
        options: Global toggles and the shared ``max_preloads`` cap.
        current_domain: Hostname the document is served from.

    Returns:
        A flat list: preconnects, explicit preloads, discovered preloads,
        then prefetches.
    """
    seen = _Seen.seeded(existing)
    hints: list[ResourceHint] = []

    if options.preconnect:
        hints.extend(_preconnect_hints(domains, seen))
    if options.preload:
        hints.extend(_explicit_preload_hints(soup, route, seen))
        hints.extend(
            _discovered_preload_hints(soup, current_domain, options.max_preloads, seen)
        )
    if options.prefetch:
        hints.extend(_prefetch_hints(soup, route, options.max_preloads, seen))

    log.debug(
        "Synthesized %d hints (route=%s)",
        len(hints),
        route.pattern if route is not None else None,
    )
    return hints


def _preconnect_hints(
    domains: Iterable[DomainCount], seen: _Seen
) -> Iterable[ResourceHint]:
    for entry in domains:
        if entry.domain in seen.preconnected:
            continue
        seen.preconnected.add(entry.domain)
        yield ResourceHint(url=f"https://{entry.domain}", type="preconnect", crossorigin=True)


def _explicit_preload_hints(
    soup: BeautifulSoup, route: RouteConfig | None, seen: _Seen
) -> Iterable[ResourceHint]:
    if route is None:
        return
    lcp_image = find_lcp_image(soup, route.lcp)
    if lcp_image is not None and route.lcp is not None:
        src = attr(lcp_image, "src") or ""
        if src not in seen.preloaded:
            seen.preloaded.add(src)
            yield ResourceHint(
                url=src,
                type="preload",
                as_="image",
                fetchpriority=route.lcp.fetchpriority,
            )
    for resource in route.preload_resources:
        if resource.url in seen.preloaded:
            continue
        seen.preloaded.add(resource.url)
        yield ResourceHint(
            url=resource.url,
            type="preload",
            as_=resource.as_,
            fetchpriority=resource.priority,
        )


def _discovered_preload_hints(
    soup: BeautifulSoup, current_domain: str, cap: int, seen: _Seen
) -> list[ResourceHint]:
    # Stylesheets are never capped; scripts fill whatever budget remains
    emitted: list[ResourceHint] = []
    for resource in stylesheet_resources(soup):
        if resource.url in seen.preloaded:
            continue
        seen.preloaded.add(resource.url)
        emitted.append(ResourceHint(url=resource.url, type="preload", as_=resource.as_))
    for resource in script_resources(soup, current_domain):
        if len(emitted) >= cap:
            break
        if resource.url in seen.preloaded:
            continue
        seen.preloaded.add(resource.url)
        emitted.append(ResourceHint(url=resource.url, type="preload", as_=resource.as_))
    return emitted


def _prefetch_hints(
    soup: BeautifulSoup, route: RouteConfig | None, cap: int, seen: _Seen
) -> list[ResourceHint]:
    candidates: list[tuple[str, str | None]] = [(path, None) for path in anchor_paths(soup)]
    if route is not None:
        candidates.extend((path, None) for path in route.prefetch_routes)
        candidates.extend((r.url, r.as_) for r in route.prefetch_resources)

    emitted: list[ResourceHint] = []
    for url, as_ in candidates:
        if len(emitted) >= cap:
            break
        if url in seen.preloaded or url in seen.prefetched:
            continue
        seen.prefetched.add(url)
        emitted.append(ResourceHint(url=url, type="prefetch", as_=as_))
    return emitted
