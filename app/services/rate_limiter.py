"""Client-side pacing for calls against a single rate-limited upstream."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from app.core.config import RateLimitSettings
from app.core.observability import AccessEvent, EventSink, LoggingEventSink


@dataclass
class RateWindowState:
    window_start: float
    request_count: int = 0
    last_call_at: float | None = None


class RateLimiter:
    """Enforce a minimum call spacing and a per-window call budget.

    One instance guards one upstream API and is shared by every conversation,
    since they all draw from the same quota. ``acquire`` is serialized with an
    ``asyncio.Lock``; callers queue behind whoever is currently waiting.
    """

    def __init__(
        self,
        settings: RateLimitSettings,
        *,
        events: EventSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._spacing = settings.min_call_spacing_seconds
        self._max_calls = settings.max_calls_per_window
        self._window = settings.window_seconds
        self._events = events or LoggingEventSink()
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._state = RateWindowState(window_start=clock())

    @property
    def state(self) -> RateWindowState:
        return self._state

    async def acquire(self) -> None:
        """Suspend until a call may be issued, then record it."""
        async with self._lock:
            state = self._state
            now = self._clock()
            if now - state.window_start >= self._window:
                self._reset_window(now)

            if state.request_count >= self._max_calls:
                wait = state.window_start + self._window - now
                if wait > 0:
                    self._events.emit(
                        AccessEvent.RATE_LIMIT_WAIT,
                        reason="window_budget",
                        seconds=round(wait, 3),
                        calls=state.request_count,
                    )
                    await self._sleep(wait)
                self._reset_window(self._clock())

            if state.last_call_at is not None:
                elapsed = self._clock() - state.last_call_at
                if elapsed < self._spacing:
                    wait = self._spacing - elapsed
                    self._events.emit(
                        AccessEvent.RATE_LIMIT_WAIT,
                        reason="spacing",
                        seconds=round(wait, 3),
                    )
                    await self._sleep(wait)

            now = self._clock()
            if state.last_call_at is None or now > state.last_call_at:
                state.last_call_at = now
            state.request_count += 1

    def _reset_window(self, now: float) -> None:
        self._state.window_start = now
        self._state.request_count = 0


__all__ = ["RateLimiter", "RateWindowState"]
