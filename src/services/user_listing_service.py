"""
Role-scoped listing and search of directory users.

Listing walks the identity provider forward with its continuation tokens, which
are remembered per scope and logical page in a CursorCache. Search ranks the whole
(scope-filtered) population and memoizes the ranked list so that paging through a
search is served from memory.
"""
import logging
import math
from collections.abc import Sequence

from core.cursor_cache import CursorCacheSet
from core.identity_provider import IdentityProvider
from core.profile_store import ProfileStore
from core.roles import Caller, Scope, Unrestricted, resolve_scope
from core.search_cache import SearchResultCache, make_search_cache_key
from schemas.user import UserListResponse, UserPage, UserRecord, UsersLookup, UserView
from services.exceptions import InvalidPageError, UpstreamError
from services.user_projection_service import project_user_records
from services.user_search_service import normalize_terms, search_users

logger = logging.getLogger(__name__)


def in_scope(view: UserView, scope: Scope) -> bool:
    """
    True when view is visible in scope.

    Restricted scopes only show users of the scope's role whose profile is
    explicitly marked complete.
    """
    if isinstance(scope, Unrestricted):
        return True
    return view.role == scope.role and view.is_profile_complete


class UserListingService:
    """Paginated, cacheable listing and search over the identity provider."""

    def __init__(
        self,
        provider: IdentityProvider,
        profile_store: ProfileStore,
        cursor_caches: CursorCacheSet,
        search_cache: SearchResultCache,
        page_size: int = 10,
        search_batch_size: int = 1000,
        search_result_limit: int = 100,
    ) -> None:
        self._provider = provider
        self._profile_store = profile_store
        self._cursor_caches = cursor_caches
        self._search_cache = search_cache
        self.page_size = page_size
        self.search_batch_size = search_batch_size
        self.search_result_limit = search_result_limit

    async def list_users(
        self,
        page: int,
        search: str | Sequence[str] | None,
        caller: Caller,
    ) -> UserListResponse:
        """
        Return one page of users visible to caller.

        With a non-blank search the page is a slice of the ranked search results,
        otherwise a slice of the provider's own ordering.

        Raises:
            ForbiddenError: If the caller has no role that may browse the directory.
            InvalidPageError: If page is negative or its cursor is missing/expired.
            UpstreamError: If the identity provider fails.
        """
        scope = resolve_scope(caller)
        if page < 0:
            raise InvalidPageError(page)

        terms = normalize_terms(search)
        if terms:
            return await self._search_page(page, terms, scope)
        return await self._listing_page(page, scope)

    async def get_users_by_ids(self, ids: Sequence[str]) -> UsersLookup:
        """
        Look up accounts by id.

        Unknown ids are reported in not_found rather than failing the lookup.

        Raises:
            UpstreamError: If the identity provider fails.
        """
        unique_ids = list(dict.fromkeys(user_id.strip() for user_id in ids if user_id.strip()))
        if not unique_ids:
            return UsersLookup(found=[], not_found=[])
        try:
            return await self._provider.get_users(unique_ids)
        except Exception as e:
            logger.exception("get_users_upstream_failed count=%d", len(unique_ids))
            raise UpstreamError("Failed to look up users") from e

    async def _fetch_provider_page(self, page_size: int, page_token: str | None) -> UserPage:
        try:
            return await self._provider.list_users(page_size, page_token)
        except Exception as e:
            logger.exception("list_users_upstream_failed")
            raise UpstreamError("Failed to list users") from e

    async def _project(self, records: Sequence[UserRecord], scope: Scope) -> list[UserView]:
        views = await project_user_records(records, self._profile_store.get)
        return [view for view in views if in_scope(view, scope)]

    async def _listing_page(self, page: int, scope: Scope) -> UserListResponse:
        cursors = self._cursor_caches.for_scope(scope)
        page_token = cursors.resolve(page)

        collected: list[UserView] = []
        while True:
            provider_page = await self._fetch_provider_page(self.page_size, page_token)
            collected.extend(await self._project(provider_page.users, scope))
            page_token = provider_page.next_page_token
            # Restricted scopes filter users out, so keep reading until the page is full
            if isinstance(scope, Unrestricted) or len(collected) >= self.page_size:
                break
            if not page_token:
                break

        # Only the token after the last provider page read starts the next page
        if page_token:
            cursors.put(page + 1, page_token)
        else:
            cursors.delete(page + 1)

        # Users past the page size are not carried over to the next page
        has_next_page = len(collected) > self.page_size or bool(page_token)
        users = collected[:self.page_size]
        logger.debug(
            "users_listed scope=%s page=%d count=%d has_next=%s",
            scope.cache_key, page, len(users), has_next_page,
        )
        return UserListResponse(
            users=users,
            total_count=len(users),
            current_page=page,
            has_next_page=has_next_page,
            page_tokens=cursors.availability(page),
        )

    async def _search_page(
        self, page: int, terms: list[str], scope: Scope,
    ) -> UserListResponse:
        key = make_search_cache_key(terms, scope)
        results = await self._search_cache.get_or_compute(
            key, lambda: self._rank(terms, scope),
        )

        start = page * self.page_size
        end = start + self.page_size
        total = len(results)
        return UserListResponse(
            users=results[start:end],
            total_count=total,
            current_page=page,
            has_next_page=end < total,
            total_pages=math.ceil(total / self.page_size),
        )

    async def _fetch_population(self) -> list[UserRecord]:
        records: list[UserRecord] = []
        page_token = None
        while True:
            provider_page = await self._fetch_provider_page(self.search_batch_size, page_token)
            records.extend(provider_page.users)
            page_token = provider_page.next_page_token
            if not page_token:
                return records

    async def _rank(self, terms: list[str], scope: Scope) -> list[UserView]:
        records = await self._fetch_population()
        visible = await self._project(records, scope)
        results = search_users(terms, visible, limit=self.search_result_limit)
        logger.info(
            "users_searched scope=%s population=%d visible=%d matches=%d",
            scope.cache_key, len(records), len(visible), len(results),
        )
        return results

