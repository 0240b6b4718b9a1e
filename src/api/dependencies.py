"""FastAPI dependencies for injection."""
from fastapi import Request

from core.auth import get_current_caller
from core.config import get_settings
from services.account_service import AccountService
from services.user_listing_service import UserListingService


def get_listing_service(request: Request) -> UserListingService:
    """Get the listing service built by the application lifespan."""
    return request.app.state.listing_service


def get_account_service(request: Request) -> AccountService:
    """Get the account service built by the application lifespan."""
    return request.app.state.account_service


__all__ = [
    "get_account_service",
    "get_current_caller",
    "get_listing_service",
    "get_settings",
]
