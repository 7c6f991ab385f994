"""Hint injection: head layout, link shape and secondary rewrites."""

from __future__ import annotations

import logging

import pytest

from autoloadperf.config import FCPOptimizations, LCPConfig, RouteConfig
from autoloadperf.document import parse_document
from autoloadperf.hints import ResourceHint
from autoloadperf.injector import inject_hints
from tests.helpers import page

pytestmark = pytest.mark.unit

MARKER = "<!--! Processed at: 42 -->"


def _inject(
    html: str,
    hints: list[ResourceHint] | None = None,
    route: RouteConfig | None = None,
    *,
    preload_pictures: bool = False,
) -> str:
    return inject_hints(
        parse_document(html),
        hints or [],
        route,
        current_domain="example.com",
        preload_pictures=preload_pictures,
        generated_at=42,
    )


def test_links_lead_head_followed_by_marker() -> None:
    """Hints open the head in synthesis order, then the marker, then original content."""
    hints = [
        ResourceHint(url="https://cdn.one.com", type="preconnect", crossorigin=True),
        ResourceHint(url="/site.css", type="preload", as_="style"),
        ResourceHint(url="/about", type="prefetch"),
    ]
    out = _inject(page(head='<link rel="stylesheet" href="/site.css">'), hints)

    assert (
        "<head>"
        '<link rel="preconnect" href="https://cdn.one.com" crossorigin>'
        '<link rel="preload" href="/site.css" as="style">'
        '<link rel="prefetch" href="/about">'
        f"{MARKER}\n"
    ) in out
    assert out.index(MARKER) < out.index("<title>Test</title>")
    assert '<link rel="stylesheet" href="/site.css">' in out


def test_preconnects_are_placed_before_other_hints() -> None:
    """Preconnects go first even when handed over out of order."""
    hints = [
        ResourceHint(url="/app.js", type="preload", as_="script"),
        ResourceHint(url="https://cdn.one.com", type="preconnect", crossorigin=True),
    ]
    out = _inject(page(), hints)
    assert out.index('rel="preconnect"') < out.index('rel="preload"')


def test_fetchpriority_and_media_render_as_attributes() -> None:
    """Optional hint fields become link attributes in a fixed order."""
    hints = [
        ResourceHint(
            url="/hero.jpg",
            type="preload",
            as_="image",
            fetchpriority="high",
            media="(min-width: 800px)",
        )
    ]
    out = _inject(page(), hints)
    assert (
        '<link rel="preload" href="/hero.jpg" as="image" fetchpriority="high" '
        'media="(min-width: 800px)">'
    ) in out


def test_source_attributes_keep_their_order() -> None:
    """Serialization does not sort or rewrite untouched markup."""
    html = page(body='<div id="x" class="b a" data-z="1" hidden>hi</div><br>')
    out = _inject(html)
    assert '<div id="x" class="b a" data-z="1" hidden>hi</div><br>' in out


def test_missing_head_is_created() -> None:
    """Hints still land in a head when the source has none."""
    hint = ResourceHint(url="/a.css", type="preload", as_="style")

    with_html = _inject("<html><body><p>x</p></body></html>", [hint])
    fragment = _inject("<p>x</p>", [hint])

    assert with_html.startswith(
        f'<html><head><link rel="preload" href="/a.css" as="style">{MARKER}'
    )
    assert fragment.startswith(f'<head><link rel="preload" href="/a.css" as="style">{MARKER}')
    assert fragment.endswith("<p>x</p>")


def test_head_is_created_after_doctype() -> None:
    """A bare document keeps its doctype first."""
    out = _inject("<!DOCTYPE html><p>x</p>")
    assert out.startswith("<!DOCTYPE html>")
    assert f"<head>{MARKER}" in out
    assert out.index("<head>") < out.index("<p>x</p>")


def test_marker_defaults_to_current_time() -> None:
    """Without an explicit stamp the marker carries a nanosecond timestamp."""
    out = inject_hints(parse_document(page()), [], None, current_domain="example.com")
    assert "<!--! Processed at: " in out


def test_lcp_image_gets_loading_priority_and_extra_attributes() -> None:
    """The matched LCP image is rewritten in place."""
    route = RouteConfig(
        "/home",
        lcp=LCPConfig(selector="img.hero", attributes={"decoding": "async"}),
    )
    out = _inject(page(body='<img class="hero" src="/hero.jpg">'), route=route)
    assert (
        '<img class="hero" src="/hero.jpg" loading="eager" fetchpriority="high" '
        'decoding="async">'
    ) in out


def test_picture_with_media_source_is_preloaded() -> None:
    """The first media-qualified source is preloaded with its media condition."""
    body = (
        "<picture>"
        '<source media="(min-width: 800px)" srcset="/big.jpg 1x, /big2.jpg 2x">'
        '<img src="/small.jpg">'
        "</picture>"
    )
    out = _inject(page(body=body), preload_pictures=True)

    assert (
        '<link rel="preload" href="/big.jpg" as="image" media="(min-width: 800px)">'
        f"{MARKER}"
    ) in out
    assert "<picture data-auto-load-perf>" in out
    assert '<img src="/small.jpg" loading="eager" fetchpriority="high">' in out


def test_picture_without_media_falls_back_to_img_src() -> None:
    """Sources without a media condition defer to the img element."""
    body = (
        '<picture><source srcset="/a.webp" type="image/webp">'
        '<img src="/fallback.jpg"></picture>'
    )
    out = _inject(page(body=body), preload_pictures=True)
    assert '<link rel="preload" href="/fallback.jpg" as="image">' in out


def test_picture_pass_skips_existing_preload_and_odd_markup() -> None:
    """No duplicate preload; pictures without sources or with two images are left alone."""
    body = (
        '<picture><source media="(min-width: 1px)" srcset="/big.jpg"><img src="/s.jpg"></picture>'
        '<picture><img src="/lonely.jpg"></picture>'
        '<picture><source srcset="/x.jpg"><img src="/one.jpg"><img src="/two.jpg"></picture>'
    )
    hints = [ResourceHint(url="/big.jpg", type="preload", as_="image")]
    out = _inject(page(body=body), hints, preload_pictures=True)

    assert out.count('href="/big.jpg"') == 1
    assert 'href="/lonely.jpg"' not in out
    assert 'href="/one.jpg"' not in out
    assert out.count("data-auto-load-perf") == 1


def test_picture_pass_is_optional() -> None:
    """With the pass disabled pictures are untouched."""
    body = '<picture><source media="(min-width: 1px)" srcset="/big.jpg"><img src="/s.jpg"></picture>'
    out = _inject(page(body=body), preload_pictures=False)
    assert 'href="/big.jpg"' not in out
    assert "data-auto-load-perf" not in out


def test_critical_styles_inline_and_stylesheets_move_last() -> None:
    """Critical CSS opens the head; same-origin stylesheets are preloaded then moved."""
    head = (
        '<link rel="stylesheet" href="/a.css">'
        '<link rel="stylesheet" href="https://cdn.x.com/b.css">'
        '<link rel="stylesheet" href="/c.css">'
    )
    route = RouteConfig(
        "/home", fcp_optimizations=FCPOptimizations(critical_styles=("body{margin:0}",))
    )
    out = _inject(page(head=head), route=route)

    assert (
        "<head><style>body{margin:0}</style>"
        '<link rel="preload" href="/a.css" as="style">'
        '<link rel="preload" href="/c.css" as="style">'
        f"{MARKER}"
    ) in out
    assert (
        '<link rel="stylesheet" href="/a.css"><link rel="stylesheet" href="/c.css"></head>'
    ) in out
    assert '<link rel="stylesheet" href="https://cdn.x.com/b.css">' in out


def test_critical_styles_reuse_synthesized_preload() -> None:
    """A stylesheet already preloaded by synthesis is moved, not duplicated."""
    route = RouteConfig("/home", fcp_optimizations=FCPOptimizations(["h1{color:red}"]))
    hints = [ResourceHint(url="/a.css", type="preload", as_="style")]
    out = _inject(page(head='<link rel="stylesheet" href="/a.css">'), hints, route)

    assert out.count('<link rel="preload" href="/a.css" as="style">') == 1
    assert out.index("<style>") < out.index('rel="preload"') < out.index(MARKER)


def test_empty_critical_styles_are_a_no_op() -> None:
    """No style block is added when there is no critical CSS."""
    route = RouteConfig("/home", fcp_optimizations=FCPOptimizations(critical_styles=()))
    out = _inject(page(head='<link rel="stylesheet" href="/a.css">'), route=route)
    assert "<style>" not in out


def test_custom_transform_runs_last() -> None:
    """The route's transform sees the fully injected document."""
    seen: list[bool] = []

    def transform(soup) -> None:
        seen.append(soup.find("link", rel="preconnect") is not None)
        soup.body.append(soup.new_tag("footer"))

    route = RouteConfig("/home", custom_transform=transform)
    hints = [ResourceHint(url="https://cdn.one.com", type="preconnect", crossorigin=True)]
    out = _inject(page(), hints, route)

    assert seen == [True]
    assert "<footer></footer>" in out


def test_failing_custom_transform_is_logged_and_skipped(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A transform error does not abort injection."""

    def transform(soup) -> None:
        raise RuntimeError("boom")

    route = RouteConfig("/home", custom_transform=transform)
    with caplog.at_level(logging.WARNING, logger="autoloadperf.injector"):
        out = _inject(page(), route=route)

    assert MARKER in out
    assert "boom" in caplog.text


def test_critical_styles_outrank_preconnects() -> None:
    """With critical CSS the style block and its preloads sit above preconnects."""
    route = RouteConfig("/home", fcp_optimizations=FCPOptimizations(["body{margin:0}"]))
    hints = [ResourceHint(url="https://cdn.one.com", type="preconnect", crossorigin=True)]
    out = _inject(page(head='<link rel="stylesheet" href="/a.css">'), hints, route)

    assert out.index("<style>") < out.index('href="/a.css" as="style"')
    assert out.index('href="/a.css" as="style"') < out.index('rel="preconnect"')
    assert out.index('rel="preconnect"') < out.index(MARKER)
