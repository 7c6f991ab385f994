"""Pytest configuration and fixtures.

Provides environment isolation and a controllable clock for cache TTL tests.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Return a controllable clock starting at an arbitrary instant."""
    return FakeClock()


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_option_env(monkeypatch, tmp_path):
    """Clear AUTOLOADPERF_* variables and point pyproject lookup at an empty dir."""
    for key in list(os.environ.keys()):
        if key.startswith("AUTOLOADPERF_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("AUTOLOADPERF_PYPROJECT_PATH", str(tmp_path / "pyproject.toml"))


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("bs4").setLevel(logging.WARNING)
