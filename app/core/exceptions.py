"""Error taxonomy shared by the token manager, gateway and resolvers."""

from __future__ import annotations

from typing import Any, Optional


class AccessLayerError(Exception):
    """Base class for every error raised by the Zoho access layer."""


class AuthenticationRequiredError(AccessLayerError):
    """The conversation must (re)authenticate before calls can proceed."""

    def __init__(self, conversation_id: str, message: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(message)


class NotAuthenticatedError(AuthenticationRequiredError):
    """Raised when no credential record exists for a conversation."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(
            conversation_id, f"No credentials stored for conversation {conversation_id}."
        )


class NoRefreshTokenError(AuthenticationRequiredError):
    """Raised when a record exists but carries no usable refresh token."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(
            conversation_id, f"No refresh token available for conversation {conversation_id}."
        )


class RefreshFailedError(AuthenticationRequiredError):
    """Raised when the OAuth endpoint rejects a refresh or answers malformed."""

    def __init__(self, conversation_id: str, detail: str) -> None:
        self.detail = detail
        super().__init__(
            conversation_id, f"Token refresh failed for conversation {conversation_id}: {detail}"
        )


class UpstreamError(AccessLayerError):
    """A Zoho call failed in a way the gateway does not recover from."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RetriesExhaustedError(UpstreamError):
    """Every slot of the retry budget was spent on throttled responses."""


class ResourceNotFoundError(AccessLayerError):
    """A name lookup (owner, project) matched nothing upstream."""

    def __init__(self, kind: str, query: str) -> None:
        self.kind = kind
        self.query = query
        super().__init__(f"No {kind} matching {query!r}.")


__all__ = [
    "AccessLayerError",
    "AuthenticationRequiredError",
    "NoRefreshTokenError",
    "NotAuthenticatedError",
    "RefreshFailedError",
    "ResourceNotFoundError",
    "RetriesExhaustedError",
    "UpstreamError",
]
