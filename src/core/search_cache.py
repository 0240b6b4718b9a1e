"""Cache of fully ranked search results, keyed by search terms and scope."""
import json
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from core.roles import Scope
from core.ttl_cache import TTLCache
from schemas.user import UserView

logger = logging.getLogger(__name__)


def make_search_cache_key(terms: Sequence[str], scope: Scope) -> str:
    """Deterministic key for a search: the terms in request order plus the scope."""
    return json.dumps({"search": list(terms), "scope": scope.cache_key}, sort_keys=True)


class SearchResultCache(TTLCache[str, list[UserView]]):
    """
    Memoizes the whole ranked result list of a search for a TTL window.

    Paging through the same search reuses the list instead of rescanning the
    provider. Concurrent misses on one key are not coalesced: each computes and
    the last write wins.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock, name="search_cache")

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[list[UserView]]],
    ) -> list[UserView]:
        """
        Return cached results for key, computing and storing them on a miss.

        Exceptions raised by compute propagate and nothing is cached.
        """
        results = self.get(key)
        if results is not None:
            logger.debug("search_cache_hit key=%s", key)
            return results

        logger.debug("search_cache_miss key=%s", key)
        results = await compute()
        self.put(key, results)
        return results
