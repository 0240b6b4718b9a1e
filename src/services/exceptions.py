"""Shared exceptions for service layer operations."""


class InvalidPageError(Exception):
    """
    Raised when a listing page has no live continuation cursor.

    Cursors are only produced by serving the previous page and expire after a TTL,
    so the caller has to restart from page 0.
    """

    def __init__(self, page: int) -> None:
        self.page = page
        super().__init__(f"The requested page is not available: {page}")


class ForbiddenError(Exception):
    """Raised when the caller's role does not allow the requested operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidRoleSelectionError(Exception):
    """Raised when a sign-up requests a role that is not a directory role."""

    def __init__(self, role: str | None) -> None:
        self.role = role
        super().__init__(f"Invalid selection of role: {role}")


class InvalidAccountActionError(Exception):
    """Raised when an unknown account action is requested."""

    def __init__(self, action: str, valid_actions: list[str]) -> None:
        self.action = action
        self.valid_actions = valid_actions
        super().__init__(
            f"Invalid action '{action}', valid actions are {', '.join(valid_actions)}",
        )


class UpstreamError(Exception):
    """
    Raised when the identity provider or profile store fails.

    The original exception is chained; the message stays generic because it is
    surfaced to clients.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class AccountExistsError(Exception):
    """Raised when signing up with an email that already has an account."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"An account already exists for {email}")
