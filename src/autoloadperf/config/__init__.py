# src/autoloadperf/config/__init__.py

"""Option management for the resource-hint optimizer.

Resolve once, freeze, then flow: options are validated at construction time
into immutable ``OptimizerOptions`` that the pipeline reads but never changes.

Key exports:
- OptimizerOptions / RouteConfig: immutable runtime payloads
- resolve_options: layered resolution (pyproject < env < overrides)
- OptionsSchema / Settings: Pydantic schemas for validation and defaults
"""

# ruff: noqa: I001

from .core import (
    CacheOptions,
    DocumentTransform,
    FCPOptimizations,
    LCPConfig,
    MinifyOptions,
    OptimizerOptions,
    OptionsSchema,
    PrefetchResource,
    PreloadResource,
    RouteCacheOptions,
    RouteConfig,
    Settings,
    resolve_options,
)
from .loaders import load_env, load_pyproject

__all__ = [  # noqa: RUF022
    # Main public API
    "OptimizerOptions",
    "RouteConfig",
    "resolve_options",
    # Value types
    "CacheOptions",
    "DocumentTransform",
    "FCPOptimizations",
    "LCPConfig",
    "MinifyOptions",
    "PrefetchResource",
    "PreloadResource",
    "RouteCacheOptions",
    # Schemas and loaders for advanced usage
    "OptionsSchema",
    "Settings",
    "load_env",
    "load_pyproject",
]
