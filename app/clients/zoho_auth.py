"""
Zoho OAuth utilities.

Only the refresh_token grant is handled here; the initial authorization code
exchange happens outside the bridge and arrives through ``store_token``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import ZohoSettings


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


@dataclass(frozen=True)
class TokenGrant:
    """Tokens issued by a successful refresh."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


class ZohoOAuthClient:
    """Exchange refresh tokens for new access tokens at the Zoho accounts server."""

    def __init__(
        self,
        settings: ZohoSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return self._settings.accounts_token_url

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "refresh_token": refresh_token,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.token_url, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Token endpoint unreachable: {exc}") from exc

        if not response.is_success:
            raise OAuthTokenExchangeError(
                f"Token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Token endpoint returned non-JSON body.") from exc
        if not isinstance(token_payload, dict):
            raise OAuthTokenExchangeError("Token endpoint returned an unexpected payload.")

        # Zoho reports some failures with a 200 and an "error" member.
        if token_payload.get("error"):
            raise OAuthTokenExchangeError(str(token_payload["error"]))

        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Zoho.")

        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise OAuthTokenExchangeError(f"Invalid expires_in value: {expires_in!r}") from exc

        return TokenGrant(
            access_token=access_token,
            expires_in=lifetime,
            refresh_token=token_payload.get("refresh_token") or None,
        )


__all__ = ["OAuthTokenExchangeError", "TokenGrant", "ZohoOAuthClient"]
