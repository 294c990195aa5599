"""
Factory functions providing the shared clients and services of the bridge.

Each factory is cached, so the whole process shares one rate limiter (one
upstream quota), one token manager (one single-flight registry) and one
credential store.
"""

from functools import lru_cache

from app.clients import SQLiteCredentialStore, ZohoOAuthClient
from app.core.config import AppSettings
from app.core.observability import LoggingEventSink
from app.dependencies.config import get_app_settings
from app.services import (
    OwnerResolver,
    ProjectQueryService,
    ProjectsBridge,
    RateLimiter,
    TaskQueryService,
    TimeLogService,
    TokenManager,
    UpstreamFetcher,
    ZohoProjectsGateway,
)
from app.utils.http import RetryConfig
from app.utils.token_cipher import TokenCipherService


@lru_cache()
def get_event_sink() -> LoggingEventSink:
    """Provide the default lifecycle event sink."""
    return LoggingEventSink()


def build_token_cipher(settings: AppSettings) -> TokenCipherService:
    """Derive the at-rest cipher, falling back to the OAuth client secret."""
    secret = settings.security.token_encryption_secret or settings.zoho.client_secret
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_encryption_secrets,
    )


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return build_token_cipher(get_app_settings())


@lru_cache()
def get_credential_store() -> SQLiteCredentialStore:
    """Provide shared SQLite credential store."""
    settings = get_app_settings()
    return SQLiteCredentialStore(
        settings.storage.credential_db_path, get_token_cipher_service()
    )


@lru_cache()
def get_zoho_oauth_client() -> ZohoOAuthClient:
    """Create a singleton Zoho OAuth client."""
    return ZohoOAuthClient(get_app_settings().zoho)


@lru_cache()
def get_token_manager() -> TokenManager:
    """Provide helper for managing Zoho OAuth tokens."""
    return TokenManager(
        get_credential_store(), get_zoho_oauth_client(), events=get_event_sink()
    )


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Provide the process-wide limiter guarding the Zoho quota."""
    return RateLimiter(get_app_settings().rate_limit, events=get_event_sink())


@lru_cache()
def get_gateway() -> ZohoProjectsGateway:
    """Provide the Zoho Projects gateway."""
    settings = get_app_settings()
    return ZohoProjectsGateway(
        settings.zoho,
        get_rate_limiter(),
        get_token_manager(),
        retry_config=RetryConfig.from_settings(settings.retry),
        events=get_event_sink(),
    )


@lru_cache()
def get_fetcher() -> UpstreamFetcher:
    """Provide the schema-tolerant collection fetcher."""
    return UpstreamFetcher(
        get_gateway(), get_app_settings().fetch, events=get_event_sink()
    )


@lru_cache()
def get_projects_bridge() -> ProjectsBridge:
    """Build the bridge consumed by the chat action layer."""
    settings = get_app_settings()
    fetcher = get_fetcher()
    owners = OwnerResolver(fetcher)
    return ProjectsBridge(
        store=get_credential_store(),
        tokens=get_token_manager(),
        gateway=get_gateway(),
        fetcher=fetcher,
        owners=owners,
        tasks=TaskQueryService(fetcher, owners, settings.fetch),
        projects=ProjectQueryService(fetcher, get_gateway(), settings.fetch),
        time_logs=TimeLogService(fetcher),
        default_portal_id=settings.zoho.portal_id,
        default_conversation_id=settings.default_conversation_id,
    )


__all__ = [
    "build_token_cipher",
    "get_credential_store",
    "get_event_sink",
    "get_fetcher",
    "get_gateway",
    "get_projects_bridge",
    "get_rate_limiter",
    "get_token_cipher_service",
    "get_token_manager",
    "get_zoho_oauth_client",
]
