"""
Helpers for retrieving and refreshing Zoho OAuth tokens.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

from app.clients.credential_store import CredentialStore
from app.clients.zoho_auth import OAuthTokenExchangeError, ZohoOAuthClient
from app.core.exceptions import (
    NoRefreshTokenError,
    NotAuthenticatedError,
    RefreshFailedError,
)
from app.core.observability import AccessEvent, EventSink, LoggingEventSink
from app.models.oauth import CredentialRecord

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenState(str, Enum):
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRED = "expired"
    REFRESHING = "refreshing"


class TokenManager:
    """Hands out valid access tokens per conversation, refreshing when needed.

    Refreshes are single-flighted: while one refresh for a conversation is in
    progress, every other caller for that conversation awaits the same task
    instead of spending the refresh token a second time.
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: ZohoOAuthClient,
        *,
        events: EventSink | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._events = events or LoggingEventSink()
        self._clock = clock
        self._inflight: Dict[str, asyncio.Task[CredentialRecord]] = {}

    def token_state(self, conversation_id: str) -> TokenState:
        if conversation_id in self._inflight:
            return TokenState.REFRESHING
        record = self._store.get(conversation_id)
        if record is None:
            return TokenState.NO_TOKEN
        if record.is_expired(self._clock()):
            return TokenState.EXPIRED
        return TokenState.VALID

    async def get_valid_token(self, conversation_id: str) -> CredentialRecord:
        """Return the stored credentials, refreshing them first if expired."""
        record = self._store.get(conversation_id)
        if record is None:
            raise NotAuthenticatedError(conversation_id)

        if not record.is_expired(self._clock()):
            return record

        logger.info("Access token expired for conversation %s", conversation_id)
        return await self.refresh(conversation_id, record.refresh_token)

    async def refresh(
        self, conversation_id: str, refresh_token: Optional[str] = None
    ) -> CredentialRecord:
        """Obtain a new access token, joining an in-flight refresh if present."""
        task = self._inflight.get(conversation_id)
        if task is None:
            task = asyncio.ensure_future(self._refresh(conversation_id, refresh_token))
            self._inflight[conversation_id] = task
            task.add_done_callback(
                lambda finished: self._forget(conversation_id, finished)
            )
        # Shielded so one cancelled waiter does not abort the shared refresh.
        return await asyncio.shield(task)

    def _forget(self, conversation_id: str, finished: asyncio.Task) -> None:
        if self._inflight.get(conversation_id) is finished:
            del self._inflight[conversation_id]

    async def _refresh(
        self, conversation_id: str, refresh_token: Optional[str]
    ) -> CredentialRecord:
        if not refresh_token:
            existing = self._store.get(conversation_id)
            if existing is None or not existing.refresh_token:
                raise NoRefreshTokenError(conversation_id)
            refresh_token = existing.refresh_token

        self._events.emit(AccessEvent.REFRESH_ATTEMPTED, conversation_id=conversation_id)
        requested_at = self._clock()
        try:
            grant = await self._oauth.refresh_token(refresh_token)
        except OAuthTokenExchangeError as exc:
            self._events.emit(
                AccessEvent.REFRESH_FAILED, conversation_id=conversation_id, error=str(exc)
            )
            raise RefreshFailedError(conversation_id, str(exc)) from exc

        updated = self._store.update(
            conversation_id,
            {
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token or refresh_token,
                "expires_at": requested_at + grant.expires_in * 1000,
            },
        )
        if updated is None:
            # Revoked while the refresh was in flight.
            raise NotAuthenticatedError(conversation_id)

        self._events.emit(
            AccessEvent.REFRESH_SUCCEEDED,
            conversation_id=conversation_id,
            expires_in=grant.expires_in,
            rotated=grant.refresh_token is not None,
        )
        return updated


__all__ = ["TokenManager", "TokenState"]
