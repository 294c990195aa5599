"""
Application configuration models and helpers.

Centralizes settings management so the token manager, the API gateway and the
resource resolvers share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import Field, PositiveFloat, PositiveInt, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class ZohoSettings(BaseSettings):
    """Configuration required for interacting with the Zoho Projects API."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(..., validation_alias="ZOHO_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="ZOHO_CLIENT_SECRET")
    portal_id: Optional[str] = Field(
        None,
        validation_alias="ZOHO_PORTAL_ID",
        description="Portal used when a caller does not supply one.",
    )
    api_base_url: str = Field(
        "https://projectsapi.zoho.in/api/v3", validation_alias="ZOHO_API_BASE_URL"
    )
    accounts_token_url: str = Field(
        "https://accounts.zoho.in/oauth/v2/token",
        validation_alias="ZOHO_ACCOUNTS_TOKEN_URL",
    )
    auth_scheme: str = Field("Zoho-oauthtoken", validation_alias="ZOHO_AUTH_SCHEME")
    portal_header: str = Field("X-ZOHO-PROJECTS", validation_alias="ZOHO_PORTAL_HEADER")
    http_timeout_seconds: PositiveFloat = Field(
        10.0, validation_alias="ZOHO_HTTP_TIMEOUT"
    )

    @field_validator("api_base_url", "accounts_token_url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        """Reject values that are obviously not HTTP endpoints."""
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value


class RateLimitSettings(BaseSettings):
    """Pacing applied to every outbound Zoho call from this process."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    min_call_spacing_seconds: float = Field(
        1.0, ge=0, validation_alias="ZOHO_MIN_CALL_SPACING"
    )
    max_calls_per_window: PositiveInt = Field(
        90,
        validation_alias="ZOHO_MAX_CALLS_PER_WINDOW",
        description="Kept under the upstream limit of 100 calls per window.",
    )
    window_seconds: PositiveFloat = Field(120.0, validation_alias="ZOHO_RATE_WINDOW")


class RetrySettings(BaseSettings):
    """Retry budget for throttled upstream responses."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    attempts: PositiveInt = Field(3, validation_alias="ZOHO_RETRY_ATTEMPTS")
    backoff_base_seconds: PositiveFloat = Field(
        2.0, validation_alias="ZOHO_RETRY_BACKOFF_BASE"
    )
    throttle_cooldown_seconds: float = Field(
        120.0, ge=0, validation_alias="ZOHO_THROTTLE_COOLDOWN"
    )


class FetchSettings(BaseSettings):
    """Pagination and result shaping for the resource resolvers."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    page_size: PositiveInt = Field(100, validation_alias="ZOHO_PAGE_SIZE")
    max_pages: PositiveInt = Field(200, validation_alias="ZOHO_MAX_PAGES")
    pending_task_limit: PositiveInt = Field(15, validation_alias="PENDING_TASK_LIMIT")
    issue_preview_limit: PositiveInt = Field(5, validation_alias="ISSUE_PREVIEW_LIMIT")


class StorageSettings(BaseSettings):
    """Location of the credential database."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    credential_db_path: str = Field(
        "data/credentials.db", validation_alias="CREDENTIAL_DB_PATH"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted for decryption during rotation.",
    )

    @field_validator("previous_encryption_secrets", mode="before")
    @classmethod
    def _split_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing secrets as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(secret.strip() for secret in value.split(",") if secret.strip())


class AppSettings(BaseSettings):
    """Root settings object for the bridge."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    default_conversation_id: Optional[str] = Field(
        None,
        validation_alias="DEFAULT_CONVERSATION_ID",
        description="Only for single-tenant deployments that share one credential.",
    )
    zoho: ZohoSettings = Field(default_factory=ZohoSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "FetchSettings",
    "RateLimitSettings",
    "RetrySettings",
    "SecuritySettings",
    "StorageSettings",
    "ZohoSettings",
    "get_settings",
]
