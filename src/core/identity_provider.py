"""
Identity provider adapter (Firebase Authentication).

The directory never owns accounts: it reads and manages them through the
provider. IdentityProvider is the interface the services depend on;
FirebaseIdentityProvider implements it with the Firebase Admin SDK.

The Admin SDK is synchronous, so every call is dispatched to a worker thread
to keep the event loop responsive.
"""
import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

import firebase_admin
from firebase_admin import auth, credentials

from core.config import Settings
from core.roles import ADMIN_ROLE
from schemas.user import UserPage, UserRecord, UsersLookup
from services.exceptions import AccountExistsError

logger = logging.getLogger(__name__)

# Provider limits per call
MAX_LIST_PAGE_SIZE = 1000
MAX_GET_USERS_BATCH = 100
MAX_DELETE_USERS_BATCH = 1000


class IdentityProvider(Protocol):
    """Account operations the directory relies on."""

    async def list_users(self, page_size: int, page_token: str | None = None) -> UserPage:
        """Return up to page_size accounts starting at page_token (None = beginning)."""
        ...

    async def get_users(self, ids: Sequence[str]) -> UsersLookup:
        """Look up accounts by id, reporting ids that do not exist."""
        ...

    async def get_custom_claims(self, user_id: str) -> dict[str, Any]:
        """Return the custom claims of an account (empty when none are set)."""
        ...

    async def set_custom_claims(self, user_id: str, claims: dict[str, Any]) -> None:
        """Replace the custom claims of an account."""
        ...

    async def create_user(self, email: str, password: str, display_name: str) -> UserRecord:
        """Create an account."""
        ...

    async def update_user(self, user_id: str, **fields: Any) -> None:
        """Update account attributes (e.g. disabled)."""
        ...

    async def delete_users(self, ids: Sequence[str]) -> None:
        """Delete accounts."""
        ...

    async def create_custom_token(
        self, user_id: str, claims: dict[str, Any] | None = None,
    ) -> str:
        """Issue a custom sign-in token for an account."""
        ...


def _from_millis(value: int | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _chunks(items: Sequence[str], size: int) -> list[Sequence[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def to_user_record(user: auth.UserRecord) -> UserRecord:
    """Convert a Firebase user into a directory UserRecord."""
    claims = user.custom_claims or {}
    metadata = user.user_metadata
    role = claims.get("role")
    return UserRecord(
        id=user.uid,
        email=user.email,
        display_name=user.display_name,
        disabled=bool(user.disabled),
        email_verified=bool(user.email_verified),
        role=role,
        is_admin=bool(claims.get("admin") or claims.get("isAdmin")) or role == ADMIN_ROLE,
        created_at=_from_millis(metadata.creation_timestamp if metadata else None),
        last_sign_in=_from_millis(metadata.last_sign_in_timestamp if metadata else None),
    )


def initialize_firebase_app(settings: Settings) -> firebase_admin.App:
    """
    Initialize (or reuse) the default Firebase app.

    Uses the service account file when configured, application default
    credentials otherwise.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if settings.firebase_credentials_path:
        credential = credentials.Certificate(settings.firebase_credentials_path)
    else:
        credential = credentials.ApplicationDefault()

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    logger.info("firebase_app_initialized project_id=%s", settings.firebase_project_id)
    return firebase_admin.initialize_app(credential, options)


class FirebaseIdentityProvider:
    """IdentityProvider backed by firebase_admin.auth."""

    def __init__(self, app: firebase_admin.App | None = None) -> None:
        self._app = app

    async def list_users(self, page_size: int, page_token: str | None = None) -> UserPage:
        """List one provider page of accounts."""
        page = await asyncio.to_thread(
            auth.list_users,
            page_token=page_token,
            max_results=min(page_size, MAX_LIST_PAGE_SIZE),
            app=self._app,
        )
        # The SDK reports an exhausted listing with an empty token
        return UserPage(
            users=[to_user_record(user) for user in page.users],
            next_page_token=page.next_page_token or None,
        )

    async def get_users(self, ids: Sequence[str]) -> UsersLookup:
        """Look up accounts in batches of the provider's maximum size."""
        found: list[UserRecord] = []
        not_found: list[str] = []
        for chunk in _chunks(list(ids), MAX_GET_USERS_BATCH):
            result = await asyncio.to_thread(
                auth.get_users,
                [auth.UidIdentifier(user_id) for user_id in chunk],
                app=self._app,
            )
            found.extend(to_user_record(user) for user in result.users)
            not_found.extend(identifier.uid for identifier in result.not_found)
        return UsersLookup(found=found, not_found=not_found)

    async def get_custom_claims(self, user_id: str) -> dict[str, Any]:
        """Read the custom claims of one account."""
        user = await asyncio.to_thread(auth.get_user, user_id, app=self._app)
        return dict(user.custom_claims or {})

    async def set_custom_claims(self, user_id: str, claims: dict[str, Any]) -> None:
        """Replace the custom claims of one account."""
        await asyncio.to_thread(auth.set_custom_user_claims, user_id, claims, app=self._app)

    async def create_user(self, email: str, password: str, display_name: str) -> UserRecord:
        """
        Create an account with email/password credentials.

        Raises:
            AccountExistsError: If the email is already registered.
        """
        try:
            user = await asyncio.to_thread(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
                app=self._app,
            )
        except auth.EmailAlreadyExistsError as e:
            raise AccountExistsError(email) from e
        return to_user_record(user)

    async def update_user(self, user_id: str, **fields: Any) -> None:
        """Update attributes of one account."""
        await asyncio.to_thread(auth.update_user, user_id, app=self._app, **fields)

    async def delete_users(self, ids: Sequence[str]) -> None:
        """Delete accounts in batches of the provider's maximum size."""
        for chunk in _chunks(list(ids), MAX_DELETE_USERS_BATCH):
            result = await asyncio.to_thread(auth.delete_users, list(chunk), app=self._app)
            if result.failure_count:
                logger.warning(
                    "delete_users_partial_failure failed=%d succeeded=%d",
                    result.failure_count,
                    result.success_count,
                )

    async def create_custom_token(
        self, user_id: str, claims: dict[str, Any] | None = None,
    ) -> str:
        """Issue a custom token, decoded to text."""
        token = await asyncio.to_thread(
            auth.create_custom_token, user_id, claims, app=self._app,
        )
        return token.decode() if isinstance(token, bytes) else token
