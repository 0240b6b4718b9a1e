"""Shared fixtures for API tests."""
from collections.abc import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient

from api.dependencies import get_account_service, get_current_caller, get_listing_service
from api.main import app
from core.config import Settings, get_settings
from core.roles import ADMIN_ROLE, Caller
from services.account_service import AccountService
from services.user_listing_service import UserListingService

ADMIN = Caller(uid="admin-1", email="ops.admin@medjournal.io", role=ADMIN_ROLE, is_admin=True)


@pytest.fixture
def as_caller() -> Callable[[Caller], None]:
    """Authenticate subsequent requests as the given caller."""
    def set_caller(caller: Caller) -> None:
        app.dependency_overrides[get_current_caller] = lambda: caller

    return set_caller


@pytest.fixture
async def client(
    listing_service: UserListingService,
    account_service: AccountService,
    as_caller: Callable[[Caller], None],
) -> AsyncGenerator[AsyncClient]:
    """
    Client for the app wired to the in-memory fakes.

    Requests are authenticated as an admin unless a test calls as_caller.
    """
    app.dependency_overrides[get_listing_service] = lambda: listing_service
    app.dependency_overrides[get_account_service] = lambda: account_service
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None, DEV_MODE="false")
    as_caller(ADMIN)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def anonymous_client(client: AsyncClient) -> AsyncClient:
    """Client whose requests carry no verified identity."""
    app.dependency_overrides.pop(get_current_caller, None)
    return client
