"""Exception hierarchy for autoloadperf."""

from __future__ import annotations


class AutoLoadPerfError(Exception):
    """Base exception for all autoloadperf errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(AutoLoadPerfError):
    """Option validation or resolution failed."""


class MinifyError(AutoLoadPerfError):
    """The external HTML minifier rejected its input or options."""
