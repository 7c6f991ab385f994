"""autoloadperf: Resource-hint injection for server-rendered HTML.

Public API:
    - ResourceOptimizer: Rewrites HTML with preconnect/preload/prefetch hints
    - OptimizerOptions / RouteConfig: Immutable configuration
    - resolve_options(): Layered options from pyproject, env and overrides
    - ResultCache: Content-addressed cache of optimized output
"""

from __future__ import annotations

import logging

from autoloadperf.cache import ResultCache, compute_cache_key
from autoloadperf.config import (
    CacheOptions,
    FCPOptimizations,
    LCPConfig,
    MinifyOptions,
    OptimizerOptions,
    PrefetchResource,
    PreloadResource,
    RouteCacheOptions,
    RouteConfig,
    resolve_options,
)
from autoloadperf.errors import (
    AutoLoadPerfError,
    ConfigurationError,
    MinifyError,
)
from autoloadperf.extraction import DomainCount, extract_domains
from autoloadperf.hints import ResourceHint, synthesize_hints
from autoloadperf.injector import inject_hints
from autoloadperf.matching import PatternMatcher, pattern_matches
from autoloadperf.optimizer import ResourceOptimizer

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("autoloadperf")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("autoloadperf").addHandler(logging.NullHandler())

__all__ = [
    "AutoLoadPerfError",
    "CacheOptions",
    "ConfigurationError",
    "DomainCount",
    "FCPOptimizations",
    "LCPConfig",
    "MinifyError",
    "MinifyOptions",
    "OptimizerOptions",
    "PatternMatcher",
    "PrefetchResource",
    "PreloadResource",
    "ResourceHint",
    "ResourceOptimizer",
    "ResultCache",
    "RouteCacheOptions",
    "RouteConfig",
    "compute_cache_key",
    "extract_domains",
    "inject_hints",
    "pattern_matches",
    "resolve_options",
    "synthesize_hints",
]
