"""Expose constructed client wrappers."""

from .credential_store import CredentialStore, SQLiteCredentialStore
from .zoho_auth import OAuthTokenExchangeError, TokenGrant, ZohoOAuthClient

__all__ = [
    "CredentialStore",
    "OAuthTokenExchangeError",
    "SQLiteCredentialStore",
    "TokenGrant",
    "ZohoOAuthClient",
]
