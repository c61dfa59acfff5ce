"""
In-memory response cache with per-entry TTL.

Entries are keyed by ``<route>:<md5 of content>`` and never updated in place.
Expired entries are dropped lazily on read and by a periodic sweep that runs
from ``set``. The cache is best-effort: if the store itself misbehaves,
``get_or_compute`` falls back to calling the producer directly.
"""
import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


def content_key(route: str, data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return f"{route}:{hashlib.md5(data).hexdigest()}"


class ResponseCache:
    def __init__(
        self,
        default_ttl: float = 60 * 60,
        sweep_interval: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: str) -> Any:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING
            if entry.expired(now):
                del self._entries[key]
                return _MISSING
            return entry.value

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self.clock()
        entry = CacheEntry(value=value, created_at=now, ttl=self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = entry
        if now - self._last_sweep >= self.sweep_interval:
            self.evict_expired()

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def evict_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self.clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.expired(now)]
            for k in stale:
                del self._entries[k]
            self._last_sweep = now
        if stale:
            logger.debug("Evicted %d expired cache entries", len(stale))
        return len(stale)

    def get_or_compute(self, key: str, producer: Callable[[], T], ttl: Optional[float] = None) -> T:
        """
        Return the cached value for ``key`` or compute, store and return it.

        Two callers racing on the same missing key may both run ``producer``.
        Producer exceptions propagate and nothing is stored.
        """
        try:
            cached = self._lookup(key)
        except Exception:
            logger.exception("Cache read failed for %s, computing directly", key)
            return producer()

        if cached is not _MISSING:
            logger.info("Cache hit for key: %s", key)
            return cached

        logger.info("Cache miss for key: %s, computing value", key)
        value = producer()
        try:
            self.set(key, value, ttl)
        except Exception:
            logger.exception("Cache write failed for %s", key)
        return value
