"""
Periodic eviction of expired cache entries.

Reads already ignore expired entries; the sweep only bounds memory by removing
entries nobody reads again. The application lifespan runs run_cache_sweeper as a
background task and cancels it on shutdown.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class SweepableCache(Protocol):
    """Anything that can drop its expired entries."""

    def sweep(self) -> int:
        """Remove expired entries and return how many were removed."""
        ...


@dataclass
class SweepStats:
    """Statistics from a sweep run."""

    removed: int = 0
    removed_by_cache: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {"removed": self.removed, **self.removed_by_cache}


def sweep_caches(caches: dict[str, SweepableCache]) -> SweepStats:
    """Sweep every cache once."""
    stats = SweepStats()
    for name, cache in caches.items():
        removed = cache.sweep()
        stats.removed_by_cache[name] = removed
        stats.removed += removed

    if stats.removed:
        logger.info("cache_sweep removed=%d details=%s", stats.removed, stats.to_dict())
    return stats


async def run_cache_sweeper(
    caches: dict[str, SweepableCache],
    interval_seconds: float,
) -> None:
    """Sweep caches every interval_seconds until cancelled."""
    logger.info(
        "cache_sweeper_started interval=%s caches=%s", interval_seconds, sorted(caches),
    )
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                sweep_caches(caches)
            except Exception:
                logger.exception("cache_sweep_failed")
    except asyncio.CancelledError:
        logger.info("cache_sweeper_stopped")
        raise

