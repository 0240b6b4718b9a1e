"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Firebase project - used for ID token audience/issuer and Firestore
    firebase_project_id: str = Field(default="", validation_alias="FIREBASE_PROJECT_ID")
    # Service account JSON; application default credentials when unset
    firebase_credentials_path: str | None = Field(
        default=None, validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
    )

    # Sign-ups whose email contains this value become admins
    admin_email: str = Field(default="", validation_alias="ADMIN_EMAIL")
    # Optional Firestore collection holding admin documents
    admin_collection: str | None = Field(default=None, validation_alias="ADMIN_COLLECTION")

    # Development mode - bypasses auth and acts as an admin caller
    dev_mode: bool = Field(default=False, validation_alias="DEV_MODE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # Listing and search
    users_page_size: int = Field(default=10, ge=1, validation_alias="USERS_PAGE_SIZE")
    search_batch_size: int = Field(
        default=1000, ge=1, le=1000, validation_alias="SEARCH_BATCH_SIZE",
    )
    search_result_limit: int = Field(default=100, ge=1, validation_alias="SEARCH_RESULT_LIMIT")

    # Cache expiry (seconds)
    cursor_cache_ttl_seconds: float = Field(
        default=300, gt=0, validation_alias="CURSOR_CACHE_TTL_SECONDS",
    )
    search_cache_ttl_seconds: float = Field(
        default=300, gt=0, validation_alias="SEARCH_CACHE_TTL_SECONDS",
    )
    cache_sweep_interval_seconds: float | None = Field(
        default=None, gt=0, validation_alias="CACHE_SWEEP_INTERVAL_SECONDS",
    )

    # Firestore batched writes are capped at 500 operations
    profile_delete_batch_size: int = Field(
        default=500, ge=1, le=500, validation_alias="PROFILE_DELETE_BATCH_SIZE",
    )

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Prevent DEV_MODE from being enabled alongside real service account credentials.

        DEV_MODE completely bypasses authentication and grants admin scope, so it must
        never run against a project configured with production credentials.
        """
        if self.dev_mode and self.firebase_credentials_path:
            raise ValueError(
                "DEV_MODE cannot be enabled when GOOGLE_APPLICATION_CREDENTIALS is set. "
                "DEV_MODE bypasses all authentication and must only be used locally.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def sweep_interval_seconds(self) -> float:
        """Interval of the periodic cache sweep (defaults to the cursor TTL)."""
        return self.cache_sweep_interval_seconds or self.cursor_cache_ttl_seconds

    @property
    def firebase_issuer(self) -> str:
        """Get the issuer of Firebase ID tokens for this project."""
        return f"https://securetoken.google.com/{self.firebase_project_id}"

    @property
    def firebase_jwks_url(self) -> str:
        """Get the JWKS URL holding the public keys that sign Firebase ID tokens."""
        return (
            "https://www.googleapis.com/service_accounts/v1/jwk/"
            "securetoken@system.gserviceaccount.com"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
