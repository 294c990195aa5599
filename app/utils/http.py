"""HTTP utilities providing retry/backoff semantics for Zoho responses."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Optional

import httpx

from app.core.config import RetrySettings

_ROLLING_THROTTLE_TYPE = "OPERATIONAL_VALIDATION_ERROR"
_ROLLING_THROTTLE_TITLE = "URL_ROLLING_THROTTLES_LIMIT_EXCEEDED"


class ResponseDisposition(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    THROTTLED = "throttled"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        throttle_cooldown_seconds: float = 120.0,
    ) -> None:
        self.attempts = attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.throttle_cooldown_seconds = throttle_cooldown_seconds

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            attempts=settings.attempts,
            backoff_base_seconds=settings.backoff_base_seconds,
            throttle_cooldown_seconds=settings.throttle_cooldown_seconds,
        )

    def backoff(self, attempt: int) -> float:
        """Exponential delay for the zero-based ``attempt``."""
        return self.backoff_base_seconds**attempt


def response_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body, or the raw text when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


def is_rolling_throttle(response: httpx.Response) -> bool:
    """Zoho reports its rolling URL throttle as a 400 with a specific error body."""
    if response.status_code != 400:
        return False
    body = response_body(response)
    if not isinstance(body, dict):
        return False
    error = body.get("error")
    if not isinstance(error, dict):
        return False
    return (
        error.get("error_type") == _ROLLING_THROTTLE_TYPE
        and error.get("title") == _ROLLING_THROTTLE_TITLE
    )


def classify_response(response: httpx.Response) -> ResponseDisposition:
    if response.is_success:
        return ResponseDisposition.SUCCESS
    if response.status_code == 429:
        return ResponseDisposition.RATE_LIMITED
    if is_rolling_throttle(response):
        return ResponseDisposition.THROTTLED
    if response.status_code == 401:
        return ResponseDisposition.UNAUTHORIZED
    return ResponseDisposition.FAILED


def parse_retry_after(
    value: Optional[str], *, now: Optional[datetime] = None
) -> Optional[float]:
    """Interpret a Retry-After header given in seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            return None
        return max(0.0, seconds)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


__all__ = [
    "ResponseDisposition",
    "RetryConfig",
    "classify_response",
    "is_rolling_throttle",
    "parse_retry_after",
    "response_body",
]
