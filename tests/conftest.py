"""Pytest fixtures for testing."""
from datetime import UTC, datetime

import pytest

from core.cursor_cache import CursorCacheSet
from core.search_cache import SearchResultCache
from fakes import FakeClock, FakeIdentityProvider, FakeProfileStore
from services.account_service import AccountService
from services.user_listing_service import UserListingService


@pytest.fixture
def clock() -> FakeClock:
    """A manually advanced clock for cache expiry tests."""
    return FakeClock()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    """An empty in-memory identity provider."""
    return FakeIdentityProvider()


@pytest.fixture
def profile_store() -> FakeProfileStore:
    """An empty in-memory profile store."""
    return FakeProfileStore()


@pytest.fixture
def cursor_caches(clock: FakeClock) -> CursorCacheSet:
    """Cursor caches driven by the fake clock."""
    return CursorCacheSet(ttl_seconds=300, clock=clock)


@pytest.fixture
def search_cache(clock: FakeClock) -> SearchResultCache:
    """Search cache driven by the fake clock."""
    return SearchResultCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def listing_service(
    provider: FakeIdentityProvider,
    profile_store: FakeProfileStore,
    cursor_caches: CursorCacheSet,
    search_cache: SearchResultCache,
) -> UserListingService:
    """Listing service over the in-memory fakes (page size 10)."""
    return UserListingService(
        provider=provider,
        profile_store=profile_store,
        cursor_caches=cursor_caches,
        search_cache=search_cache,
        page_size=10,
        search_batch_size=1000,
    )


@pytest.fixture
def account_service(
    provider: FakeIdentityProvider,
    profile_store: FakeProfileStore,
) -> AccountService:
    """Account service over the in-memory fakes, with admin sign-up marker 'admin@medjournal'."""
    return AccountService(
        provider=provider,
        profile_store=profile_store,
        admin_email="admin@medjournal",
        admin_collection="admins",
        clock=lambda: datetime(2024, 6, 1, tzinfo=UTC),
    )
