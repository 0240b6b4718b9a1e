"""Authentication module for Firebase ID token validation."""
import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from core.config import Settings, get_settings
from core.roles import ADMIN_ROLE, Caller

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

# Cache for JWKS client (reuse across requests)
_jwks_clients: dict[str, PyJWKClient] = {}

DEV_CALLER = Caller(
    uid="dev-local-development-user",
    email="dev@localhost",
    role=ADMIN_ROLE,
    is_admin=True,
)


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """Get or create a cached JWKS client for the given settings."""
    if settings.firebase_jwks_url not in _jwks_clients:
        _jwks_clients[settings.firebase_jwks_url] = PyJWKClient(
            settings.firebase_jwks_url,
            cache_jwk_set=True,
            lifespan=3600,  # Cache keys for 1 hour
        )
    return _jwks_clients[settings.firebase_jwks_url]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and validate a Firebase ID token.

    Raises:
        HTTPException: If token is invalid, expired, or has wrong audience/issuer
            (401), or the signing keys cannot be fetched (503).
    """
    try:
        jwks_client = get_jwks_client(settings)
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.firebase_project_id,
            issuer=settings.firebase_issuer,
        )

    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid audience")
    except jwt.InvalidIssuerError:
        raise _unauthorized("Invalid issuer")
    except jwt.PyJWKClientConnectionError as e:
        logger.warning("jwks_fetch_failed error=%s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not validate credentials",
        )
    except jwt.PyJWTError as e:
        raise _unauthorized(f"Invalid token: {e}")


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Caller:
    """
    Dependency that validates the bearer token and returns the calling user.

    Role and admin status come from the token's custom claims.
    In DEV_MODE, bypasses auth and returns an admin caller.
    """
    if settings.dev_mode:
        return DEV_CALLER

    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_jwt(credentials.credentials, settings)

    caller = Caller.from_claims(payload)
    if not caller.uid:
        raise _unauthorized("Invalid token: missing sub claim")
    return caller
