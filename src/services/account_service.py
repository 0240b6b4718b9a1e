"""Account sign-up and administrative account actions."""
import asyncio
import logging
import secrets
import string
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from core.identity_provider import IdentityProvider
from core.profile_store import ProfileStore
from core.roles import ADMIN_ROLE, VALID_ROLES, Caller, require_admin
from schemas.account import AccountActionResponse, SignedUpUser, SignUpRequest, SignUpResponse
from services.exceptions import (
    AccountExistsError,
    InvalidAccountActionError,
    InvalidRoleSelectionError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

PROFILE_ID_ALPHABET = string.ascii_lowercase + string.digits
PROFILE_ID_SUFFIX_LENGTH = 6

# Action -> past tense used in the response message
ACCOUNT_ACTIONS = {
    "delete": "deleted",
    "enable": "enabled",
    "disable": "disabled",
    "verify": "verified",
    "falsify": "unverified",
}


def generate_profile_id(role: str) -> str:
    """Public profile identifier: role prefix plus a short random suffix (e.g. pat_x1b9k2)."""
    suffix = "".join(
        secrets.choice(PROFILE_ID_ALPHABET) for _ in range(PROFILE_ID_SUFFIX_LENGTH)
    )
    return f"{role[:3]}_{suffix}"


def is_admin_email(email: str, admin_email: str) -> bool:
    """True when admin sign-ups are configured and email contains the admin marker."""
    return bool(admin_email) and admin_email in email


class AccountService:
    """Creates accounts and applies admin actions to existing ones."""

    def __init__(
        self,
        provider: IdentityProvider,
        profile_store: ProfileStore,
        admin_email: str = "",
        admin_collection: str | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._provider = provider
        self._profile_store = profile_store
        self._admin_email = admin_email
        self._admin_collection = admin_collection
        self._clock = clock

    @property
    def profile_collections(self) -> list[str]:
        """Every collection that may hold a profile document for a user."""
        collections = list(VALID_ROLES)
        if self._admin_collection:
            collections.append(self._admin_collection)
        return collections

    async def sign_up(self, request: SignUpRequest) -> SignUpResponse:
        """
        Create an account, its profile document and its role claims.

        Admin sign-ups (email matching the configured admin marker) get the admin
        role and no profile. Everyone else gets an incomplete profile in the
        collection of the chosen role.

        Raises:
            InvalidRoleSelectionError: If the role is not a directory role.
            AccountExistsError: If the email is already registered.
            UpstreamError: If the identity provider or profile store fails.
        """
        if request.role not in VALID_ROLES:
            raise InvalidRoleSelectionError(request.role)

        display_name = f"{request.first_name} {request.last_name}"
        is_admin = is_admin_email(request.email, self._admin_email)
        claims: dict[str, Any] = (
            {"role": ADMIN_ROLE, "admin": True}
            if is_admin
            else {"role": request.role, "admin": False}
        )

        try:
            user = await self._provider.create_user(
                email=request.email,
                password=request.password,
                display_name=display_name,
            )
        except AccountExistsError:
            raise
        except Exception as e:
            logger.exception("sign_up_failed role=%s", request.role)
            raise UpstreamError("Failed to create account") from e

        profile = None
        try:
            if not is_admin:
                profile = {
                    "uid": user.id,
                    "isProfileComplete": False,
                    "createdAt": self._clock(),
                    f"{request.role}_id": generate_profile_id(request.role),
                }
                await self._profile_store.set(request.role, user.id, profile)

            await self._provider.set_custom_claims(user.id, claims)
            token = await self._provider.create_custom_token(user.id, claims)
        except Exception as e:
            logger.exception("sign_up_failed user_id=%s role=%s", user.id, request.role)
            await self._discard_account(user.id, None if is_admin else request.role)
            raise UpstreamError("Failed to create account") from e

        logger.info("user_signed_up user_id=%s role=%s", user.id, claims["role"])
        return SignUpResponse(
            message=f"Welcome to MedJournal, {display_name}",
            user=SignedUpUser(
                uid=user.id,
                first_name=request.first_name,
                last_name=request.last_name,
                role=claims["role"],
                admin=claims["admin"],
                profile=profile,
            ),
            token=token,
        )

    async def _discard_account(self, user_id: str, profile_collection: str | None) -> None:
        """Remove a half-created account so the email can sign up again."""
        try:
            await self._provider.delete_users([user_id])
            if profile_collection:
                await self._profile_store.batch_delete(profile_collection, [user_id])
        except Exception:
            logger.exception("sign_up_rollback_failed orphaned_user_id=%s", user_id)

    async def apply_action(
        self,
        ids: Sequence[str],
        action: str,
        caller: Caller,
    ) -> AccountActionResponse:
        """
        Apply an admin action to a set of accounts.

        Actions:
            delete: remove the accounts and their profile documents.
            enable / disable: toggle whether the accounts can sign in.
            verify / falsify: set the `verified` custom claim, keeping other claims.

        Raises:
            ForbiddenError: If the caller is not an admin.
            InvalidAccountActionError: If action is unknown.
            UpstreamError: If the identity provider or profile store fails.
        """
        require_admin(caller)
        if action not in ACCOUNT_ACTIONS:
            raise InvalidAccountActionError(action, list(ACCOUNT_ACTIONS))

        user_ids = list(dict.fromkeys(ids))
        handlers: dict[str, Callable[[list[str]], Awaitable[None]]] = {
            "delete": self._delete,
            "enable": lambda targets: self._set_disabled(targets, disabled=False),
            "disable": lambda targets: self._set_disabled(targets, disabled=True),
            "verify": lambda targets: self._set_verified(targets, verified=True),
            "falsify": lambda targets: self._set_verified(targets, verified=False),
        }
        try:
            await handlers[action](user_ids)
        except Exception as e:
            logger.exception("account_action_failed action=%s count=%d", action, len(user_ids))
            raise UpstreamError(f"Failed to {action} users") from e

        logger.info(
            "account_action_applied action=%s count=%d by=%s",
            action, len(user_ids), caller.uid,
        )
        return AccountActionResponse(
            message=f"Users successfully {ACCOUNT_ACTIONS[action]}.",
            updated_user_ids=user_ids,
        )

    async def _delete(self, user_ids: list[str]) -> None:
        await asyncio.gather(
            self._provider.delete_users(user_ids),
            *(
                self._profile_store.batch_delete(collection, user_ids)
                for collection in self.profile_collections
            ),
        )

    async def _set_disabled(self, user_ids: list[str], disabled: bool) -> None:
        await asyncio.gather(
            *(self._provider.update_user(user_id, disabled=disabled) for user_id in user_ids),
        )

    async def _set_verified(self, user_ids: list[str], verified: bool) -> None:
        async def update(user_id: str) -> None:
            claims = await self._provider.get_custom_claims(user_id)
            await self._provider.set_custom_claims(user_id, {**claims, "verified": verified})

        await asyncio.gather(*(update(user_id) for user_id in user_ids))
