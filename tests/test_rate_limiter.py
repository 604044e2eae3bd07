from __future__ import annotations

import pytest

from fakes import FakeClock
from siteaudit.services.rate_limiter import TokenRateLimiter


def _limiter(clock: FakeClock, **kwargs) -> TokenRateLimiter:
    return TokenRateLimiter(clock=clock, sleep=clock.sleep, **kwargs)


@pytest.mark.asyncio
async def test_consecutive_calls_are_spaced_by_min_interval():
    clock = FakeClock()
    limiter = _limiter(clock, min_interval=0.2)

    await limiter.acquire()
    await limiter.acquire()

    assert clock.sleeps == [pytest.approx(0.2)]
    assert limiter.tokens_used == 30_000


@pytest.mark.asyncio
async def test_no_spacing_wait_when_calls_are_already_far_apart():
    clock = FakeClock()
    limiter = _limiter(clock, min_interval=0.2)

    await limiter.acquire()
    clock.now += 1.0
    await limiter.acquire()

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_waits_for_window_reset_once_threshold_is_exceeded():
    clock = FakeClock()
    limiter = _limiter(clock, tokens_per_minute=1000, threshold=0.8, min_interval=0, estimated_tokens=500)

    await limiter.acquire()
    await limiter.acquire()
    assert clock.sleeps == []
    assert limiter.tokens_used == 1000

    clock.now += 10.0
    await limiter.acquire()

    assert clock.sleeps == [pytest.approx(50.0)]
    # New window holds only the call that waited.
    assert limiter.tokens_used == 500


@pytest.mark.asyncio
async def test_expired_window_resets_usage_without_waiting():
    clock = FakeClock()
    limiter = _limiter(clock, tokens_per_minute=1000, min_interval=0, estimated_tokens=900)

    await limiter.acquire()
    clock.now += 61.0
    await limiter.acquire()

    assert clock.sleeps == []
    assert limiter.tokens_used == 900


@pytest.mark.asyncio
async def test_explicit_estimate_overrides_default():
    clock = FakeClock()
    limiter = _limiter(clock, min_interval=0)

    await limiter.acquire(estimated_tokens=42)

    assert limiter.tokens_used == 42
