"""Pydantic schemas for directory users."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserRecord(BaseModel):
    """Account as returned by the identity provider (read-only for the directory)."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    display_name: str | None = None
    disabled: bool = False
    email_verified: bool = False
    role: str | None = None
    is_admin: bool = False
    created_at: datetime | None = None
    last_sign_in: datetime | None = None


class UserView(UserRecord):
    """
    UserRecord enriched with its profile document.

    profile is only set for users holding a directory role who are not admins.
    search_score is set on search results (higher is more relevant).
    """

    profile: dict[str, Any] | None = None
    search_score: float | None = None

    @property
    def is_profile_complete(self) -> bool:
        """True when the profile document reports a completed profile."""
        return bool(self.profile) and self.profile.get("isProfileComplete") is True


class UserPage(BaseModel):
    """One provider page of accounts plus the continuation token for the next one."""

    users: list[UserRecord]
    next_page_token: str | None = None


class UsersLookup(BaseModel):
    """Result of looking up accounts by id."""

    found: list[UserRecord]
    not_found: list[str]


class UserListResponse(BaseModel):
    """Paginated listing or search response."""

    users: list[UserView] = Field(description="Users on the requested page")
    total_count: int = Field(
        description="Number of search matches, or number of users on this page when listing",
    )
    current_page: int
    has_next_page: bool
    page_tokens: list[bool] | None = Field(
        default=None,
        description="Listing only: index i is true when page i can be requested directly",
    )
    total_pages: int | None = Field(default=None, description="Search only")


class UsersByIdsResponse(BaseModel):
    """Response for account lookup by ids."""

    users: list[UserRecord]
    not_found: list[str]
