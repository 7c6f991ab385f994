"""Document queries: third-party origins, discoverable resources, existing hints.

Everything here reads the parsed tree and never mutates it. Extraction is
best-effort: URLs that cannot be parsed are skipped rather than reported.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from autoloadperf.constants import MAX_PRECONNECT_DOMAINS
from autoloadperf.document import attr, rel_tokens

if TYPE_CHECKING:
    from bs4 import BeautifulSoup, Tag

    from autoloadperf.config import LCPConfig

log = logging.getLogger(__name__)

_ORIGIN_TAGS = ("link", "script", "img", "a")


@dataclass(frozen=True)
class DomainCount:
    """How often a third-party hostname is referenced by one document."""

    domain: str
    count: int


@dataclass(frozen=True)
class DiscoveredResource:
    """A resource found in the document that may deserve a preload."""

    url: str
    as_: str


@dataclass
class ExistingHints:
    """Hints already present in the source document, used to seed de-dup."""

    preconnected: set[str] = field(default_factory=set)
    preloaded: set[str] = field(default_factory=set)
    prefetched: set[str] = field(default_factory=set)


def hostname_of(url: str) -> str | None:
    """Return the lowercase hostname of an absolute http(s) URL, else None."""
    try:
        parts = urlsplit(url.strip())
        if parts.scheme.lower() not in ("http", "https"):
            return None
        return parts.hostname
    except ValueError:
        return None


def is_same_origin(url: str, current_domain: str) -> bool:
    """Return True for relative URLs and absolute URLs on ``current_domain``."""
    url = url.strip()
    if not url or url.startswith(("data:", "//")):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if not parts.scheme and not parts.netloc:
        return True
    return parts.hostname == current_domain.lower()


def extract_domains(
    soup: BeautifulSoup,
    current_domain: str,
    *,
    limit: int = MAX_PRECONNECT_DOMAINS,
) -> list[DomainCount]:
    """Rank third-party hostnames referenced by ``href``/``src`` attributes.

    Links, scripts, images and anchors are scanned in document order. Only
    absolute http(s) URLs count; the current domain is excluded. Returns the
    top ``limit`` hostnames by descending count, ties in first-seen order.
    """
    current = current_domain.lower()
    counts: Counter[str] = Counter()
    for tag in soup.find_all(_ORIGIN_TAGS):
        url = attr(tag, "href") or attr(tag, "src")
        if not url:
            continue
        host = hostname_of(url)
        if host is None or host == current:
            continue
        counts[host] += 1

    # Counter preserves first-seen order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [DomainCount(domain, count) for domain, count in ranked[:limit]]


def stylesheet_resources(soup: BeautifulSoup) -> list[DiscoveredResource]:
    """Return every ``<link rel="stylesheet">`` with a non-empty href."""
    resources: list[DiscoveredResource] = []
    for link in soup.find_all("link"):
        tokens = rel_tokens(link)
        href = attr(link, "href")
        if "stylesheet" in tokens and "alternate" not in tokens and href:
            resources.append(DiscoveredResource(href, "style"))
    return resources


def should_preload_script(script: Tag, current_domain: str) -> bool:
    """Return True for same-origin, render-blocking classic scripts."""
    if script.has_attr("async") or script.has_attr("defer"):
        return False
    if script.has_attr("nomodule"):
        return False
    if (attr(script, "type") or "").strip().lower() == "module":
        return False
    src = attr(script, "src")
    if not src:
        return False
    return is_same_origin(src, current_domain)


def script_resources(soup: BeautifulSoup, current_domain: str) -> list[DiscoveredResource]:
    """Return the preloadable scripts in document order."""
    return [
        DiscoveredResource(attr(script, "src") or "", "script")
        for script in soup.find_all("script", src=True)
        if should_preload_script(script, current_domain)
    ]


def anchor_paths(soup: BeautifulSoup) -> list[str]:
    """Return same-origin anchor targets (paths starting with a single ``/``)."""
    paths: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = attr(anchor, "href") or ""
        if href.startswith("/") and not href.startswith("//"):
            paths.append(href)
    return paths


def existing_hints(soup: BeautifulSoup) -> ExistingHints:
    """Collect the resource hints the document already declares."""
    found = ExistingHints()
    for link in soup.find_all("link", href=True):
        href = attr(link, "href") or ""
        tokens = rel_tokens(link)
        if "preconnect" in tokens:
            found.preconnected.add(hostname_of(href) or href)
        if "preload" in tokens:
            found.preloaded.add(href)
        if "prefetch" in tokens:
            found.prefetched.add(href)
    return found


def find_lcp_image(soup: BeautifulSoup, lcp: LCPConfig | None) -> Tag | None:
    """Return the first element matching the LCP rule, or None."""
    if lcp is None:
        return None
    for element in soup.select(lcp.selector):
        src = attr(element, "src")
        if not src or src.startswith("data:"):
            continue
        if lcp.matches(src):
            return element
    return None
