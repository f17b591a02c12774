import os
import sys
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _should_load_env_file() -> str | None:
    """Determine if .env should be loaded.

    Local development picks up `backend/.env` automatically. Under pytest or
    in CI the file is ignored so tests control the environment explicitly.
    """
    if any("pytest" in str(x) for x in sys.argv if x):
        return None
    if os.environ.get("CI") in ("1", "true", "True"):
        return None
    return ".env"


class Settings(BaseSettings):
    # Environment configuration
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: 'development', 'staging', 'production' or 'test'",
    )

    DATABASE_URL: str = "sqlite:///./data/moderation.db"
    SECRET_KEY: str = Field(
        ...,  # Required, no default
        description="JWT secret key - must be set via SECRET_KEY environment variable",
    )
    ALGORITHM: str = "HS256"
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins (comma-separated in env var)",
    )

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(
        default=5,
        description="Number of persistent connections in pool",
    )
    DB_MAX_OVERFLOW: int = Field(
        default=10,
        description="Extra connections when pool exhausted",
    )
    DB_POOL_TIMEOUT: int = Field(
        default=30,
        description="Seconds to wait for connection from pool",
    )
    DB_POOL_RECYCLE: int = Field(
        default=1800,
        description="Recycle connections after N seconds (30 min default)",
    )

    AUTO_CREATE_DB: bool = Field(
        default=False,
        description="When true (development only), call Base.metadata.create_all on startup",
    )

    # Bootstrap staff account created by init_db.py
    ADMIN_EMAIL: str = Field(
        default="",
        description="Email of the admin created by init_db.py (empty = skip)",
    )
    ADMIN_USERNAME: str = Field(
        default="admin",
        description="Username of the bootstrap admin",
    )

    SLOW_REQUEST_THRESHOLD: float = Field(
        default=1.0,
        description="Log warning for requests slower than this (seconds)",
    )

    # Content filter cache
    CONTENT_FILTER_CACHE_TTL_SECONDS: int = Field(
        default=300,
        description="Reload the filter snapshot after this many seconds (0 = never)",
    )
    CONTENT_FILTER_MAX_REGEX_LENGTH: int = Field(
        default=200,
        description="Regex rules longer than this are rejected on save and skipped on load",
    )
    CONTENT_FILTER_DEFAULT_REPLACEMENT: str = Field(
        default="xxx",
        description="Replacement used when a rule has an empty replacement",
    )

    # Trust state synchronization
    TRUST_RECOMPUTE_ATTEMPTS: int = Field(
        default=2,
        ge=1,
        description="Attempts at writing a user's trust state before marking it stale",
    )
    TRUST_RECONCILE_INTERVAL_MINUTES: int = Field(
        default=5,
        description="How often the scheduler retries stale trust states",
    )

    # Warnings and reports
    WARNING_DEFAULT_EXPIRY_DAYS: int = Field(
        default=30,
        description="Days until a warning expires when no duration is given",
    )
    REPORT_SUBMIT_RATE_LIMIT: str = Field(
        default="10/hour",
        description="slowapi rate limit applied to report submission",
    )

    # Ntfy Push Notification Settings (staff alerts)
    NTFY_URL: str = Field(
        default="",
        description="Ntfy server URL (internal Docker: http://ntfy:80)",
    )
    NTFY_TOPIC_PREFIX: str = Field(
        default="moderation-staff",
        description="Prefix for notification topics",
    )
    NTFY_AUTH_TOKEN: str = Field(
        default="",
        description="Optional auth token for publishing (if ntfy requires auth)",
    )
    NTFY_ENABLED: bool = Field(
        default=True,
        description="Enable/disable staff push notifications globally",
    )
    APP_URL: str = Field(
        default="http://localhost:3000",
        description="Frontend URL for notification deep links",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | List[str]) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    model_config = SettingsConfigDict(
        env_file=_should_load_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",  # Allow extra env vars (e.g., SENTRY_DSN) without validation errors
    )


# Instantiating Settings() raises pydantic.ValidationError if SECRET_KEY isn't set.
settings = Settings()  # type: ignore[call-arg]


def get_settings() -> Settings:
    """Get the settings instance (for dependency injection)."""
    return settings
