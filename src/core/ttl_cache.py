"""
In-process cache with time-based expiry.

Entries expire TTL seconds after insertion. Expiry is enforced two ways:
- lazily, a read of an expired entry evicts it and reports a miss
- actively, sweep() removes every expired entry (driven by tasks.cache_sweep)

The cache is a plain dict shared by all requests on the event loop. Every
operation touches a single key and never awaits, so no locking is needed;
writes to an existing key overwrite it.
"""
import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[K, V]):
    """A cached value and the (monotonic) time it was stored."""

    key: K
    value: V
    inserted_at: float


class TTLCache(Generic[K, V]):
    """Mapping with per-entry expiry after a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: dict[K, CacheEntry[K, V]] = {}

    def _is_expired(self, entry: CacheEntry[K, V], now: float) -> bool:
        return now - entry.inserted_at >= self.ttl_seconds

    def get_entry(self, key: K) -> CacheEntry[K, V] | None:
        """Return the live entry for key, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            logger.debug("%s_expired key=%s", self.name, key)
            return None
        return entry

    def get(self, key: K) -> V | None:
        """Return the live value for key, or None on miss or expiry."""
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def has(self, key: K) -> bool:
        """True when key holds a live entry."""
        return self.get_entry(key) is not None

    def put(self, key: K, value: V) -> None:
        """Store value under key, replacing any existing entry."""
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())

    def delete(self, key: K) -> None:
        """Remove key if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def sweep(self) -> int:
        """Remove all expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("%s_sweep removed=%d", self.name, len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
