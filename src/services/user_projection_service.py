"""Projection of identity provider records into directory views."""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from core.roles import ADMIN_ROLE
from schemas.user import UserRecord, UserView

logger = logging.getLogger(__name__)

# (collection, user id) -> profile document or None
ProfileFetcher = Callable[[str, str], Awaitable[dict[str, Any] | None]]


def needs_profile(record: UserRecord) -> bool:
    """True when the record's role has a profile collection worth reading."""
    return bool(record.role) and record.role != ADMIN_ROLE and not record.is_admin


async def project_user_record(
    record: UserRecord,
    fetch_profile: ProfileFetcher,
) -> UserView | None:
    """
    Build the directory view of a provider record.

    Users holding a directory role get their profile document attached (read from
    the collection named after the role). Admins and role-less users never carry a
    profile.

    Never raises: a failure is logged and the record is dropped (None returned), so
    one broken account cannot fail a whole page.
    """
    try:
        profile = None
        if needs_profile(record):
            profile = await fetch_profile(record.role, record.id)
        return UserView(**record.model_dump(), profile=profile)
    except Exception:
        logger.exception("user_projection_failed user_id=%s", record.id)
        return None


async def project_user_records(
    records: Sequence[UserRecord],
    fetch_profile: ProfileFetcher,
) -> list[UserView]:
    """Project records concurrently, keeping input order and dropping failures."""
    views = await asyncio.gather(
        *(project_user_record(record, fetch_profile) for record in records),
    )
    return [view for view in views if view is not None]
