"""
Lifecycle hooks for the access layer.

Components emit an ``AccessEvent`` at well-defined points (token refresh,
rate-limit waits, retries, pagination). The default sink writes them to the
standard logger; tests and metrics exporters can supply their own sink.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol


class AccessEvent(str, Enum):
    REFRESH_ATTEMPTED = "token.refresh.attempted"
    REFRESH_SUCCEEDED = "token.refresh.succeeded"
    REFRESH_FAILED = "token.refresh.failed"
    RATE_LIMIT_WAIT = "rate_limit.wait"
    RETRY_SCHEDULED = "gateway.retry"
    REAUTHENTICATED = "gateway.reauthenticated"
    PAGE_FETCHED = "fetch.page"
    ROUTE_FAILED = "fetch.route_failed"


class EventSink(Protocol):
    def emit(self, event: AccessEvent, **fields: Any) -> None:
        ...


class LoggingEventSink:
    """Write access events to a standard library logger."""

    _WARNING_EVENTS = frozenset(
        {AccessEvent.REFRESH_FAILED, AccessEvent.RETRY_SCHEDULED, AccessEvent.ROUTE_FAILED}
    )

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("app.access")

    def emit(self, event: AccessEvent, **fields: Any) -> None:
        level = logging.WARNING if event in self._WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        self._logger.log(level, "%s %s", event.value, details)


__all__ = ["AccessEvent", "EventSink", "LoggingEventSink"]
