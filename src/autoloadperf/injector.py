"""Hint injection: write synthesized hints and secondary rewrites into the tree.

Resulting ``<head>`` layout, top to bottom:

- critical ``<style>`` block and stylesheet preloads (FCP pass only)
- preconnect hints
- preload and prefetch hints, in synthesis order
- responsive-image preloads
- the generation marker comment
- original head content, with same-origin stylesheets moved last (FCP pass only)

Preconnects open the head unless the route sets critical styles; the FCP
block then outranks them and sits above the preconnects.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from bs4 import Comment, NavigableString

from autoloadperf.constants import MARKER_TEMPLATE, PICTURE_MARKER_ATTR
from autoloadperf.document import attr, ensure_head, rel_tokens, serialize_document
from autoloadperf.extraction import find_lcp_image, is_same_origin
from autoloadperf.hints import ResourceHint

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bs4 import BeautifulSoup, Tag

    from autoloadperf.config import RouteConfig

log = logging.getLogger(__name__)


def inject_hints(
    soup: BeautifulSoup,
    hints: Sequence[ResourceHint],
    route: RouteConfig | None,
    *,
    current_domain: str,
    preload_pictures: bool = True,
    generated_at: int | None = None,
) -> str:
    """Mutate the document with hints and secondary rewrites, then serialize.

    Args:
        soup: Parsed document owned by this call.
        hints: Output of ``synthesize_hints``.
        route: Matched route configuration, or None.
        current_domain: Hostname the document is served from.
        preload_pictures: Run the responsive-image pass.
        generated_at: Marker timestamp in nanoseconds; defaults to now.

    Returns:
        The serialized HTML.
    """
    head = ensure_head(soup)
    stamp = generated_at if generated_at is not None else time.time_ns()
    marker = Comment(MARKER_TEMPLATE.format(stamp=stamp))
    head.insert(0, marker)
    marker.insert_after(NavigableString("\n"))

    ordered = [h for h in hints if h.type == "preconnect"]
    ordered.extend(h for h in hints if h.type != "preconnect")
    for position, hint in enumerate(ordered):
        head.insert(position, _link(soup, hint))

    if route is not None and route.lcp is not None:
        _mark_lcp_image(soup, route)
    if preload_pictures:
        _preload_pictures(soup, head, marker)
    if route is not None and route.fcp_optimizations is not None:
        styles = route.fcp_optimizations.critical_styles
        if styles:
            _promote_critical_styles(soup, head, styles, current_domain)
    if route is not None and route.custom_transform is not None:
        try:
            route.custom_transform(soup)
        except Exception as exc:
            log.warning("Custom transform for route %r failed: %s", route.pattern, exc)

    return serialize_document(soup)


def _link(soup: BeautifulSoup, hint: ResourceHint) -> Tag:
    return soup.new_tag("link", attrs=hint.attributes())


def _find_head_preload(head: Tag, url: str) -> Tag | None:
    for link in head.find_all("link", href=True):
        if "preload" in rel_tokens(link) and attr(link, "href") == url:
            return link
    return None


def _mark_lcp_image(soup: BeautifulSoup, route: RouteConfig) -> None:
    lcp = route.lcp
    image = find_lcp_image(soup, lcp)
    if image is None or lcp is None:
        return
    image["loading"] = lcp.loading
    image["fetchpriority"] = lcp.fetchpriority
    for name, value in lcp.attributes.items():
        image[name] = value


def _first_srcset_url(srcset: str) -> str:
    return srcset.split(",")[0].strip().split(" ")[0]


def _preload_pictures(soup: BeautifulSoup, head: Tag, marker: Comment) -> None:
    """Preload one candidate per ``<picture>`` for the initial viewport.

    The emitted link carries the candidate's media condition so the browser
    only fetches it when that condition holds; a client-side script can
    re-run selection on resize using the marker attribute.
    """
    for picture in soup.find_all("picture"):
        sources = picture.find_all("source")
        images = picture.find_all("img")
        if not sources or len(images) != 1:
            continue
        image = images[0]
        picture[PICTURE_MARKER_ATTR] = ""
        image["loading"] = "eager"
        image["fetchpriority"] = "high"

        hint: ResourceHint | None = None
        for source in sources:
            media = attr(source, "media")
            srcset = attr(source, "srcset")
            if media and srcset:
                hint = ResourceHint(
                    url=_first_srcset_url(srcset),
                    type="preload",
                    as_="image",
                    media=media,
                )
                break
        if hint is None:
            src = attr(image, "src")
            if not src or src.startswith("data:"):
                continue
            hint = ResourceHint(url=src, type="preload", as_="image")
        if not hint.url or _find_head_preload(head, hint.url) is not None:
            continue
        marker.insert_before(_link(soup, hint))


def _promote_critical_styles(
    soup: BeautifulSoup,
    head: Tag,
    critical_styles: Sequence[str],
    current_domain: str,
) -> None:
    """Inline critical CSS and move same-origin stylesheets after it.

    Each same-origin stylesheet gets a preload at the top of head and the
    original link moves to the end of head, so the inline block paints first.
    """
    stylesheets = [
        link
        for link in soup.find_all("link", href=True)
        if "stylesheet" in rel_tokens(link)
        and is_same_origin(attr(link, "href") or "", current_domain)
    ]

    for link in reversed(stylesheets):
        href = attr(link, "href") or ""
        preload = _find_head_preload(head, href)
        if preload is None:
            preload = _link(soup, ResourceHint(url=href, type="preload", as_="style"))
        else:
            preload.extract()
        head.insert(0, preload)

    for link in stylesheets:
        head.append(link.extract())

    style = soup.new_tag("style")
    style.string = "\n".join(critical_styles)
    head.insert(0, style)
