# src/autoloadperf/config/loaders.py

"""Option loaders for the environment and ``pyproject.toml``.

Each loader returns a plain dictionary that ``resolve_options`` merges and
validates; nothing here performs validation beyond type coercion.
"""

from __future__ import annotations

import os
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

# --- Constants ---

CONFIG_TOOL_NAME = "autoloadperf"
ENV_PREFIX = "AUTOLOADPERF_"
PYPROJECT_PATH_VAR = "AUTOLOADPERF_PYPROJECT_PATH"

# Meta/control variables that steer resolution but aren't option fields
META_ENV_FIELDS = {"pyproject_path", "telemetry"}


def _coerce_bool(v: str) -> bool:
    """Convert string to boolean using common conventions."""
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _coerce_env_value(value: str, target_type: type | None) -> Any:
    """Coerce env string to target type when possible.

    Falls back to original string on conversion failure or unknown type.
    """
    if target_type is bool:
        return _coerce_bool(value)
    if target_type is int:
        try:
            return int(value)
        except ValueError:
            return value
    return value


# --- Environment Loading ---


def load_env() -> Mapping[str, Any]:
    """Load option values from ``AUTOLOADPERF_*`` environment variables.

    Booleans and integers are coerced using the ``Settings`` schema; other
    values pass through as strings for Pydantic to validate.
    """
    from .core import Settings  # local import to keep loaders import-light

    config: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in META_ENV_FIELDS:
            continue
        info = Settings.model_fields.get(field_name)
        target_type = info.annotation if info is not None else None
        if target_type not in {bool, int}:
            target_type = None
        config[field_name] = _coerce_env_value(value, target_type)
    return config


# --- File loading ---


def get_pyproject_path() -> Path:
    """Return the project file path, honouring ``AUTOLOADPERF_PYPROJECT_PATH``."""
    override = os.environ.get(PYPROJECT_PATH_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / "pyproject.toml"


def _read_toml(path: Path) -> dict[str, Any]:
    """Safely read a TOML file, returning empty dict when missing or invalid."""
    if not path.exists():
        return {}

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def load_pyproject(path: Path | None = None) -> Mapping[str, Any]:
    """Load the ``[tool.autoloadperf]`` table, including any ``pages`` tables.

    Table order is preserved, so route patterns keep their file order.
    """
    data = _read_toml(path or get_pyproject_path())
    section = data.get("tool", {}).get(CONFIG_TOOL_NAME, {})
    return dict(section) if isinstance(section, dict) else {}
