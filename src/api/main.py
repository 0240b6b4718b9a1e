"""FastAPI application entry point."""
import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from google.cloud import firestore
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import health, users
from core.config import get_settings
from core.cursor_cache import CursorCacheSet
from core.identity_provider import FirebaseIdentityProvider, initialize_firebase_app
from core.profile_store import FirestoreProfileStore
from core.search_cache import SearchResultCache
from services.account_service import AccountService
from services.user_listing_service import UserListingService
from tasks.cache_sweep import run_cache_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Connect to Firebase Authentication and Firestore
    firebase_app = initialize_firebase_app(app_settings)
    provider = FirebaseIdentityProvider(firebase_app)
    profile_store = FirestoreProfileStore(
        firestore.AsyncClient(
            project=app_settings.firebase_project_id or None,
            credentials=firebase_app.credential.get_credential(),
        ),
        batch_size=app_settings.profile_delete_batch_size,
    )

    # Startup: Process-wide caches shared by all requests
    cursor_caches = CursorCacheSet(ttl_seconds=app_settings.cursor_cache_ttl_seconds)
    search_cache = SearchResultCache(ttl_seconds=app_settings.search_cache_ttl_seconds)

    app.state.listing_service = UserListingService(
        provider=provider,
        profile_store=profile_store,
        cursor_caches=cursor_caches,
        search_cache=search_cache,
        page_size=app_settings.users_page_size,
        search_batch_size=app_settings.search_batch_size,
        search_result_limit=app_settings.search_result_limit,
    )
    app.state.account_service = AccountService(
        provider=provider,
        profile_store=profile_store,
        admin_email=app_settings.admin_email,
        admin_collection=app_settings.admin_collection,
    )

    sweeper = asyncio.create_task(
        run_cache_sweeper(
            {"cursor_cache": cursor_caches, "search_cache": search_cache},
            app_settings.sweep_interval_seconds,
        ),
    )

    yield

    # Shutdown: Stop the sweeper and drop cached state
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    cursor_caches.clear()
    search_cache.clear()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="MedJournal Users API",
    description="Role-scoped user directory with paginated listing and fuzzy search.",
    version="0.1.0",
    lifespan=lifespan,
)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(users.router)
