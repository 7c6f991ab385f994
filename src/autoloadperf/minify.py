"""Optional minification post-pass over htmlmin."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import htmlmin

from autoloadperf.errors import MinifyError

if TYPE_CHECKING:
    from autoloadperf.config import MinifyOptions

log = logging.getLogger(__name__)


def minify_html(html: str, policy: MinifyOptions, *, strict: bool = False) -> str:
    """Minify ``html`` when the policy enables it.

    Options are forwarded verbatim to ``htmlmin.minify``. A minifier failure
    never fails the response: the input is returned unchanged and a warning
    is logged, unless ``strict`` asks for a ``MinifyError`` instead.
    """
    if not policy.enabled or not html:
        return html
    try:
        return htmlmin.minify(html, **dict(policy.options))
    except Exception as exc:
        if strict:
            raise MinifyError(
                f"HTML minification failed: {exc}",
                hint="Check that minify options are valid htmlmin.minify keywords.",
            ) from exc
        log.warning("HTML minification failed; serving unminified output: %s", exc)
        return html
