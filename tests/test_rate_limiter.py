from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from app.core.config import RateLimitSettings
from app.core.observability import AccessEvent
from app.services.rate_limiter import RateLimiter
from conftest import FakeClock, FakeSleep


def _limits(spacing: float = 1.0, max_calls: int = 90, window: float = 120) -> RateLimitSettings:
    return RateLimitSettings(
        ZOHO_MIN_CALL_SPACING=spacing,
        ZOHO_MAX_CALLS_PER_WINDOW=max_calls,
        ZOHO_RATE_WINDOW=window,
    )


@pytest.mark.asyncio
async def test_first_call_is_immediate() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(), clock=clock, sleep=sleep)

    await limiter.acquire()

    assert sleep.calls == []
    assert limiter.state.request_count == 1
    assert limiter.state.last_call_at == clock.now


@pytest.mark.asyncio
async def test_back_to_back_calls_are_spaced(events) -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(spacing=1.0), events=events, clock=clock, sleep=sleep)

    await limiter.acquire()
    clock.advance(0.25)
    await limiter.acquire()

    assert sleep.calls == [pytest.approx(0.75)]
    assert events.of(AccessEvent.RATE_LIMIT_WAIT)[0]["reason"] == "spacing"


@pytest.mark.asyncio
async def test_no_spacing_wait_after_enough_time() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(spacing=1.0), clock=clock, sleep=sleep)

    await limiter.acquire()
    clock.advance(3)
    await limiter.acquire()

    assert sleep.calls == []


@pytest.mark.asyncio
async def test_exhausted_window_waits_for_remainder(events) -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(
        _limits(spacing=0, max_calls=3, window=120), events=events, clock=clock, sleep=sleep
    )

    for _ in range(3):
        await limiter.acquire()
    clock.advance(20)
    await limiter.acquire()

    assert sleep.calls == [pytest.approx(100)]
    assert limiter.state.request_count == 1
    assert limiter.state.window_start == clock.now
    wait = events.of(AccessEvent.RATE_LIMIT_WAIT)[0]
    assert wait["reason"] == "window_budget"
    assert wait["calls"] == 3


@pytest.mark.asyncio
async def test_window_resets_once_elapsed() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(spacing=0, max_calls=2, window=10), clock=clock, sleep=sleep)

    await limiter.acquire()
    await limiter.acquire()
    clock.advance(10)
    await limiter.acquire()

    assert sleep.calls == []
    assert limiter.state.request_count == 1


@pytest.mark.asyncio
async def test_never_exceeds_budget_within_a_window() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(spacing=0.5, max_calls=5, window=60), clock=clock, sleep=sleep)
    issued_at = []

    for _ in range(12):
        await limiter.acquire()
        issued_at.append(clock.now)

    for start in issued_at:
        in_window = [t for t in issued_at if start <= t < start + 60]
        assert len(in_window) <= 5
    gaps = [later - earlier for earlier, later in zip(issued_at, issued_at[1:])]
    assert all(gap >= 0.5 - 1e-9 for gap in gaps)


@pytest.mark.asyncio
async def test_concurrent_acquires_are_serialized() -> None:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter(_limits(spacing=2.0), clock=clock, sleep=sleep)

    await asyncio.gather(*(limiter.acquire() for _ in range(3)))

    assert sleep.calls == [pytest.approx(2.0), pytest.approx(2.0)]
    assert limiter.state.request_count == 3
