"""Test helpers (small, reusable doubles and builders).

Keep this file tiny and purpose-built: it exists so suites share one fake
clock and one page builder instead of growing one-off variants.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FakeClock:
    """Monotonic clock test double; advance it instead of sleeping."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def page(head: str = "", body: str = "") -> str:
    """Return a minimal HTML document with the given head and body markup."""
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<title>Test</title>\n"
        f"{head}\n</head>\n<body>\n{body}\n</body>\n</html>\n"
    )
