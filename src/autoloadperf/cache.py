"""Cache: Content-hash identity with bounded size and lazy TTL expiry."""

from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import logging
import threading
import time
from typing import TYPE_CHECKING

from autoloadperf.constants import DEFAULT_CACHE_MAX_SIZE
from autoloadperf.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)


def compute_cache_key(content: str) -> str:
    """Compute a deterministic key from the pre-optimization HTML."""
    return hashlib.sha256(content.encode("utf-8", "surrogatepass")).hexdigest()


@dataclass
class _Entry:
    value: str
    created_at: float
    ttl: float | None = None

    def is_expired(self, now: float) -> bool:
        if self.ttl is None:
            return False
        return now - self.created_at > self.ttl


@dataclass
class ResultCache:
    """Store of optimized output keyed by a hash of the raw input.

    Entries expire lazily: an expired entry is deleted by the read that finds
    it. When full, inserting evicts the entry with the oldest creation time.
    All operations are serialized by one lock since eviction and insert must
    happen as a pair.
    """

    max_size: int = DEFAULT_CACHE_MAX_SIZE
    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, _Entry] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate the size bound."""
        if self.max_size < 1:
            raise ConfigurationError(
                f"max_size must be ≥ 1, got {self.max_size}",
                hint="This bounds how many optimized pages are kept in memory.",
            )

    def get(self, content: str) -> str | None:
        """Return the cached value for content, or None if absent or expired."""
        key = compute_cache_key(content)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self.clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, content: str, value: str, ttl: float | None = None) -> None:
        """Store value for content; ``ttl=None`` never expires."""
        key = compute_cache_key(content)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = _Entry(value=value, created_at=self.clock(), ttl=ttl)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Return the number of stored entries, expired ones included."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def _evict_oldest(self) -> None:
        # Ties resolve to insertion order since min() keeps the first minimum
        oldest = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest]
        log.debug("Evicted cache entry %s", oldest[:12])
