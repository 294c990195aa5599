"""
Gateway for the Zoho Projects REST API.

Every upstream call goes through ``ZohoProjectsGateway.call``: it takes a slot
from the shared rate limiter, sends the request, absorbs throttling with
bounded retries, and re-authenticates once on a 401.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from app.core.config import ZohoSettings
from app.core.exceptions import (
    AuthenticationRequiredError,
    RetriesExhaustedError,
    UpstreamError,
)
from app.core.observability import AccessEvent, EventSink, LoggingEventSink
from app.services.rate_limiter import RateLimiter
from app.services.token_manager import TokenManager
from app.utils.http import (
    ResponseDisposition,
    RetryConfig,
    classify_response,
    parse_retry_after,
    response_body,
)

logger = logging.getLogger(__name__)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class ZohoProjectsGateway:
    """Single call primitive used by every Zoho Projects operation."""

    def __init__(
        self,
        settings: ZohoSettings,
        rate_limiter: RateLimiter,
        token_manager: TokenManager,
        *,
        retry_config: RetryConfig | None = None,
        events: EventSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._limiter = rate_limiter
        self._tokens = token_manager
        self._retry = retry_config or RetryConfig()
        self._events = events or LoggingEventSink()
        self._transport = transport
        self._sleep = sleep

    def build_url(self, endpoint: str) -> str:
        base = self._settings.api_base_url.rstrip("/")
        return f"{base}/{endpoint.lstrip('/')}"

    def build_headers(self, token: str, portal_id: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"{self._settings.auth_scheme} {token}",
            "Content-Type": "application/json",
        }
        if portal_id:
            headers[self._settings.portal_header] = str(portal_id)
        return headers

    async def call_upstream(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        *,
        conversation_id: str,
        portal_id: Optional[str] = None,
    ) -> httpx.Response:
        """Call ``endpoint`` with the conversation's current access token."""
        record = await self._tokens.get_valid_token(conversation_id)
        return await self.call(
            endpoint,
            record.access_token,
            method=method,
            body=body,
            params=params,
            conversation_id=conversation_id,
            portal_id=portal_id,
        )

    async def call(
        self,
        endpoint: str,
        token: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> httpx.Response:
        """Issue one logical request, retrying throttled responses.

        429 and the rolling-throttle 400 each consume one slot of the retry
        budget. A 401 triggers one token refresh (when ``conversation_id`` is
        given) and an immediate resend that does not consume a slot.
        """
        await self._limiter.acquire()

        method = method.upper()
        url = self.build_url(endpoint)
        headers = self.build_headers(token, portal_id)
        request_kwargs: Dict[str, Any] = {"params": dict(params or {})}
        if method in _BODY_METHODS and body is not None:
            request_kwargs["json"] = body

        remaining = self._retry.attempts
        reauthenticated = False
        last_response: httpx.Response | None = None

        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds, transport=self._transport
        ) as client:
            while remaining > 0:
                try:
                    response = await client.request(
                        method, url, headers=headers, **request_kwargs
                    )
                except httpx.HTTPError as exc:
                    raise UpstreamError(
                        f"{method} {endpoint} failed: {exc}"
                    ) from exc

                disposition = classify_response(response)
                if disposition is ResponseDisposition.SUCCESS:
                    return response
                last_response = response

                if disposition in (
                    ResponseDisposition.RATE_LIMITED,
                    ResponseDisposition.THROTTLED,
                ):
                    attempt = self._retry.attempts - remaining
                    remaining -= 1
                    if remaining == 0:
                        break
                    delay = self._retry_delay(response, disposition, attempt)
                    self._events.emit(
                        AccessEvent.RETRY_SCHEDULED,
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        attempts=self._retry.attempts,
                        reason=disposition.value,
                        seconds=delay,
                    )
                    await self._sleep(delay)
                    continue

                if (
                    disposition is ResponseDisposition.UNAUTHORIZED
                    and conversation_id
                    and not reauthenticated
                ):
                    reauthenticated = True
                    try:
                        record = await self._tokens.refresh(conversation_id)
                    except AuthenticationRequiredError as exc:
                        logger.warning(
                            "Re-authentication failed for conversation %s: %s",
                            conversation_id,
                            exc,
                        )
                        raise self._upstream_error(method, endpoint, response) from exc
                    headers = self.build_headers(record.access_token, portal_id)
                    self._events.emit(
                        AccessEvent.REAUTHENTICATED,
                        endpoint=endpoint,
                        conversation_id=conversation_id,
                    )
                    continue

                raise self._upstream_error(method, endpoint, response)

        assert last_response is not None
        raise RetriesExhaustedError(
            f"{method} {endpoint} still throttled after {self._retry.attempts} attempts",
            status_code=last_response.status_code,
            body=response_body(last_response),
        )

    def _retry_delay(
        self,
        response: httpx.Response,
        disposition: ResponseDisposition,
        attempt: int,
    ) -> float:
        if disposition is ResponseDisposition.THROTTLED:
            return self._retry.throttle_cooldown_seconds
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        if retry_after is not None:
            return min(retry_after, self._retry.throttle_cooldown_seconds)
        return self._retry.backoff(attempt)

    @staticmethod
    def _upstream_error(method: str, endpoint: str, response: httpx.Response) -> UpstreamError:
        return UpstreamError(
            f"{method} {endpoint} returned {response.status_code}",
            status_code=response.status_code,
            body=response_body(response),
        )


__all__ = ["ZohoProjectsGateway"]
