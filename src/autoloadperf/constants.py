"""Project-wide constants for autoloadperf"""  # noqa: D415

from types import MappingProxyType

# ==============================================================================
# Hint Synthesis
# ==============================================================================

DEFAULT_MAX_PRELOADS = 5  # Cap shared by discovered-preload and prefetch phases
MAX_PRECONNECT_DOMAINS = 2  # Only the busiest third-party origins get a preconnect

HINT_TYPES = ("preconnect", "preload", "prefetch")
PRIORITIES = ("auto", "high", "low")

# ==============================================================================
# Result Cache
# ==============================================================================

DEFAULT_CACHE_MAX_SIZE = 100  # Tens to hundreds of pages; eviction scan is O(n)

# ==============================================================================
# Injection
# ==============================================================================

# Leading "!" keeps the marker through htmlmin's comment removal
MARKER_TEMPLATE = "! Processed at: {stamp} "

PICTURE_MARKER_ATTR = "data-auto-load-perf"

# ==============================================================================
# Minification
# ==============================================================================

DEFAULT_MINIFY_OPTIONS = MappingProxyType(
    {
        "remove_comments": True,
        "remove_empty_space": True,
        "reduce_boolean_attributes": True,
    }
)
