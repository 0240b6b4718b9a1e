"""
Cache mapping logical page numbers to provider continuation tokens.

The identity provider only pages forward through opaque tokens, so the token for
page N exists only after page N-1 was served. Tokens are kept for a TTL; an
expired or never-issued page cannot be reached without restarting from page 0.
"""
import logging
import time
from collections.abc import Callable

from core.roles import Scope
from core.ttl_cache import TTLCache
from services.exceptions import InvalidPageError

logger = logging.getLogger(__name__)


class CursorCache(TTLCache[int, str]):
    """Logical page -> continuation token for one provider traversal order."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cursor_cache",
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock, name=name)

    def get(self, page: int) -> str | None:
        """Return the token that starts page, or None. Page 0 never has one."""
        if page <= 0:
            return None
        return super().get(page)

    def put(self, page: int, token: str) -> None:
        """Remember the token that starts page."""
        if page <= 0:
            raise ValueError("Only pages after the first one carry a token")
        super().put(page, token)
        logger.debug("%s_put page=%d", self.name, page)

    def resolve(self, page: int) -> str | None:
        """
        Return the provider token to start reading page from.

        Returns None for page 0 (start of the provider stream).

        Raises:
            InvalidPageError: If page > 0 has no live token.
        """
        if page == 0:
            return None
        token = self.get(page)
        if token is None:
            logger.debug("%s_miss page=%d", self.name, page)
            raise InvalidPageError(page)
        return token

    def availability(self, page: int) -> list[bool]:
        """List of length page+2; index i is True when page i has a live token."""
        return [self.has(i) for i in range(page + 2)]


class CursorCacheSet:
    """
    One CursorCache per visibility scope.

    Unrestricted listing and each restricted listing consume provider pages at a
    different rate, so a page number maps to a different token in each of them.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._caches: dict[str, CursorCache] = {}

    def for_scope(self, scope: Scope) -> CursorCache:
        """Get (creating on first use) the cursor cache of scope."""
        key = scope.cache_key
        cache = self._caches.get(key)
        if cache is None:
            cache = CursorCache(
                ttl_seconds=self.ttl_seconds,
                clock=self._clock,
                name=f"cursor_cache[{key}]",
            )
            self._caches[key] = cache
        return cache

    def sweep(self) -> int:
        """Sweep every scope's cache and return the number of removed entries."""
        return sum(cache.sweep() for cache in list(self._caches.values()))

    def clear(self) -> None:
        """Drop all cached tokens."""
        self._caches.clear()
