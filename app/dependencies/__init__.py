"""Expose dependency helpers for the chat action layer."""

from .clients import (
    build_token_cipher,
    get_credential_store,
    get_event_sink,
    get_fetcher,
    get_gateway,
    get_projects_bridge,
    get_rate_limiter,
    get_token_cipher_service,
    get_token_manager,
    get_zoho_oauth_client,
)
from .config import get_app_settings

__all__ = [
    "build_token_cipher",
    "get_app_settings",
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
