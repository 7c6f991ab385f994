"""Stage timings and counters for the optimizer itself.

Off by default: ``TelemetryContext()`` hands out a shared no-op unless
reporters are passed or ``AUTOLOADPERF_TELEMETRY=1`` was set at import. Stage
names nest with dots (``optimize.inject``) and counters are keyed under the
innermost open stage (``optimize.cache.hit``).
"""

from __future__ import annotations

from collections import Counter
from contextlib import AbstractContextManager, contextmanager, nullcontext
from contextvars import ContextVar
from dataclasses import dataclass, field
import logging
import os
import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

_open_stages: ContextVar[tuple[str, ...]] = ContextVar("autoloadperf_stages", default=())

_ENABLED_BY_ENV = os.getenv("AUTOLOADPERF_TELEMETRY") == "1"


class TelemetryReporter(Protocol):
    """Receives one call per finished stage and per counter increment."""

    def record_timing(self, stage: str, seconds: float) -> None: ...  # noqa: D102
    def record_count(self, name: str, increment: int) -> None: ...  # noqa: D102


class _Disabled:
    __slots__ = ()

    def __call__(self, stage: str) -> AbstractContextManager[None]:  # noqa: ARG002
        return _NO_STAGE

    def count(self, name: str, increment: int = 1) -> None:
        pass


class _Recording:
    __slots__ = ("_reporters",)

    def __init__(self, reporters: tuple[TelemetryReporter, ...]) -> None:
        self._reporters = reporters

    @contextmanager
    def __call__(self, stage: str) -> Iterator[None]:
        if not stage:
            raise ValueError("Stage name must be a non-empty string")
        parents = _open_stages.get()
        token = _open_stages.set((*parents, stage))
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - started
            _open_stages.reset(token)
            self._emit("record_timing", ".".join((*parents, stage)), elapsed)

    def count(self, name: str, increment: int = 1) -> None:
        self._emit("record_count", ".".join((*_open_stages.get(), name)), increment)

    def _emit(self, method: str, key: str, value: float) -> None:
        # A broken reporter must never fail a response
        for reporter in self._reporters:
            try:
                getattr(reporter, method)(key, value)
            except Exception as e:
                log.error(
                    "Telemetry reporter %s failed on %s: %s",
                    type(reporter).__name__,
                    key,
                    e,
                    exc_info=True,
                )


_NO_STAGE = nullcontext()
_DISABLED = _Disabled()

Telemetry = _Recording | _Disabled


def TelemetryContext(*reporters: TelemetryReporter) -> Telemetry:  # noqa: N802
    """Return a recording context for ``reporters``, or the shared no-op.

    With no reporters and ``AUTOLOADPERF_TELEMETRY=1``, records into a fresh
    ``SimpleReporter``.
    """
    if reporters:
        return _Recording(reporters)
    if _ENABLED_BY_ENV:
        return _Recording((SimpleReporter(),))
    return _DISABLED


@dataclass
class SimpleReporter:
    """In-memory reporter: every duration per stage, a running total per counter."""

    timings: dict[str, list[float]] = field(default_factory=dict)
    counts: Counter[str] = field(default_factory=Counter)

    def record_timing(self, stage: str, seconds: float) -> None:
        self.timings.setdefault(stage, []).append(seconds)

    def record_count(self, name: str, increment: int) -> None:
        self.counts[name] += increment
