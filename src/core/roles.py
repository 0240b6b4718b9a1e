"""
Directory roles and visibility scopes.

The directory is two-sided: doctors browse patients and patients browse doctors.
Admins see every account. A Scope is computed once per request from the caller's
claims and threaded through filtering, search and caching.
"""
from dataclasses import dataclass
from typing import Any

from services.exceptions import ForbiddenError

PATIENT_ROLE = "patients"
DOCTOR_ROLE = "doctors"
ADMIN_ROLE = "admin@medjournal"

# Roles a user may pick at sign-up (each one is also a profile collection)
VALID_ROLES = (PATIENT_ROLE, DOCTOR_ROLE)

COMPLEMENTARY_ROLES = {
    DOCTOR_ROLE: PATIENT_ROLE,
    PATIENT_ROLE: DOCTOR_ROLE,
}


@dataclass(frozen=True)
class Caller:
    """Identity of the authenticated caller, taken from verified token claims."""

    uid: str
    email: str | None = None
    role: str | None = None
    is_admin: bool = False

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Caller":
        """Build a caller from decoded ID token claims."""
        return cls(
            uid=claims.get("user_id") or claims.get("sub") or "",
            email=claims.get("email"),
            role=claims.get("role"),
            is_admin=bool(claims.get("admin") or claims.get("isAdmin")),
        )

    @property
    def is_administrator(self) -> bool:
        """True for callers flagged admin or holding the admin role."""
        return self.is_admin or self.role == ADMIN_ROLE


@dataclass(frozen=True)
class Unrestricted:
    """Scope of admin callers: every user is visible."""

    @property
    def cache_key(self) -> str:
        """Stable identifier used in cache keys."""
        return "*"


@dataclass(frozen=True)
class RestrictedTo:
    """Scope of non-admin callers: only complete profiles of one role are visible."""

    role: str

    @property
    def cache_key(self) -> str:
        """Stable identifier used in cache keys."""
        return self.role


Scope = Unrestricted | RestrictedTo


def resolve_scope(caller: Caller) -> Scope:
    """
    Compute the visibility scope for a caller.

    Raises:
        ForbiddenError: If the caller is neither an admin nor holds a directory role.
    """
    if caller.is_administrator:
        return Unrestricted()
    if caller.role in COMPLEMENTARY_ROLES:
        return RestrictedTo(COMPLEMENTARY_ROLES[caller.role])
    raise ForbiddenError("User does not have the required role")


def require_admin(caller: Caller) -> None:
    """
    Ensure the caller is an administrator.

    Raises:
        ForbiddenError: If the caller is not an admin.
    """
    if not caller.is_administrator:
        raise ForbiddenError("Insufficient permissions to manage users")
