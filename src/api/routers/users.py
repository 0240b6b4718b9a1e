"""User directory endpoints: listing, search, lookup, sign-up and account actions."""
from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_account_service, get_current_caller, get_listing_service
from core.roles import Caller, require_admin
from schemas.account import (
    AccountActionRequest,
    AccountActionResponse,
    SignUpRequest,
    SignUpResponse,
)
from schemas.user import UserListResponse, UsersByIdsResponse
from services.account_service import AccountService
from services.exceptions import (
    AccountExistsError,
    ForbiddenError,
    InvalidAccountActionError,
    InvalidPageError,
    InvalidRoleSelectionError,
    UpstreamError,
)
from services.user_listing_service import UserListingService


router = APIRouter(prefix="/users", tags=["users"])


def _forbidden(e: ForbiddenError) -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={"message": str(e), "error_code": "FORBIDDEN"},
    )


def _upstream(e: UpstreamError) -> HTTPException:
    # Provider details stay in the logs
    return HTTPException(
        status_code=500,
        detail={"message": str(e), "error_code": "UPSTREAM_ERROR"},
    )


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(default=0, description="Zero-based page number"),
    search: list[str] | None = Query(
        default=None, description="Search terms (repeat the parameter for multiple terms)",
    ),
    caller: Caller = Depends(get_current_caller),
    listing_service: UserListingService = Depends(get_listing_service),
) -> UserListResponse:
    """
    List or search the users visible to the caller.

    - Admins see every account.
    - Doctors see patients and patients see doctors, limited to complete profiles.
    - **page**: pages are reached in order; a page is only available after the
      previous one was served (page_tokens reports which ones are available).
    - **search**: fuzzy, typo-tolerant search; results are ranked by relevance.
    """
    try:
        return await listing_service.list_users(page=page, search=search, caller=caller)
    except ForbiddenError as e:
        raise _forbidden(e) from e
    except InvalidPageError as e:
        raise HTTPException(
            status_code=400,
            detail={"message": str(e), "error_code": "INVALID_PAGE"},
        ) from e
    except UpstreamError as e:
        raise _upstream(e) from e


@router.get("/by-ids", response_model=UsersByIdsResponse)
async def get_users_by_ids(
    ids: str | None = Query(default=None, description="Comma-separated user ids"),
    caller: Caller = Depends(get_current_caller),
    listing_service: UserListingService = Depends(get_listing_service),
) -> UsersByIdsResponse:
    """Look up accounts by id (admin only). Unknown ids are listed in not_found."""
    try:
        require_admin(caller)
    except ForbiddenError as e:
        raise _forbidden(e) from e

    id_list = [user_id for user_id in (ids or "").split(",") if user_id.strip()]
    if not id_list:
        raise HTTPException(
            status_code=400,
            detail={"message": "The ids query parameter is required", "error_code": "MISSING_IDS"},
        )

    try:
        lookup = await listing_service.get_users_by_ids(id_list)
    except UpstreamError as e:
        raise _upstream(e) from e
    return UsersByIdsResponse(users=lookup.found, not_found=lookup.not_found)


@router.post("/create-user", response_model=SignUpResponse, status_code=201)
async def create_user(
    data: SignUpRequest,
    account_service: AccountService = Depends(get_account_service),
) -> SignUpResponse:
    """Sign up a new patient or doctor and return a custom sign-in token."""
    try:
        return await account_service.sign_up(data)
    except InvalidRoleSelectionError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Please select a valid role to continue",
                "error_code": "INVALID_ROLE",
            },
        ) from e
    except AccountExistsError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "error_code": "ACCOUNT_EXISTS"},
        ) from e
    except UpstreamError as e:
        raise _upstream(e) from e


@router.post("/actions", response_model=AccountActionResponse)
async def apply_account_action(
    data: AccountActionRequest,
    caller: Caller = Depends(get_current_caller),
    account_service: AccountService = Depends(get_account_service),
) -> AccountActionResponse:
    """
    Apply an action to accounts (admin only).

    - **action**: delete, enable, disable, verify or falsify.
    """
    try:
        return await account_service.apply_action(data.ids, data.action, caller)
    except ForbiddenError as e:
        raise _forbidden(e) from e
    except InvalidAccountActionError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "error_code": "INVALID_ACTION"},
        ) from e
    except UpstreamError as e:
        raise _upstream(e) from e
