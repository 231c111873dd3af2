from __future__ import annotations

import pytest

from backend.app.services.ratelimit import RateLimiter, TokenBucket


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_rate_limiter_allows_within_limit() -> None:
    limiter = RateLimiter()
    for _ in range(3):
        assert limiter.allow("key", limit=3, window_seconds=1)


def test_rate_limiter_blocks_after_limit() -> None:
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    assert limiter.allow("key", limit=2, window_seconds=1)
    clock.advance(0.1)
    assert limiter.allow("key", limit=2, window_seconds=1)
    clock.advance(0.1)
    assert limiter.allow("key", limit=2, window_seconds=1) is False
    assert limiter.allow("other", limit=2, window_seconds=1)

    clock.advance(1.5)
    assert limiter.allow("key", limit=2, window_seconds=1)


def test_token_bucket_burst_then_refill() -> None:
    clock = FakeClock()
    bucket = TokenBucket(max_requests_per_hour=3600, max_burst=5, clock=clock)
    assert bucket.refill_interval == 1.0

    assert [bucket.try_consume() for _ in range(5)] == [True] * 5
    assert bucket.try_consume() is False

    clock.advance(bucket.refill_interval)
    assert bucket.try_consume() is True
    assert bucket.try_consume() is False


def test_token_bucket_refill_is_capped_at_burst() -> None:
    clock = FakeClock()
    bucket = TokenBucket(max_requests_per_hour=3600, max_burst=3, clock=clock)
    for _ in range(3):
        bucket.try_consume()

    clock.advance(600)

    assert bucket.tokens == pytest.approx(3.0)


def test_token_bucket_enforces_hourly_quota() -> None:
    clock = FakeClock()
    bucket = TokenBucket(max_requests_per_hour=3, max_burst=3, clock=clock)
    assert all(bucket.try_consume() for _ in range(3))

    # Enough time for tokens to refill but still inside the trailing hour.
    clock.advance(3599)
    status = bucket.status()
    assert status["available_tokens"] >= 1
    assert status["requests_in_last_hour"] == 3
    assert status["is_limited"] is True
    assert bucket.try_consume() is False

    clock.advance(2)
    assert bucket.try_consume() is True
    assert bucket.status()["requests_in_last_hour"] == 1


def test_token_bucket_status_shape() -> None:
    bucket = TokenBucket(max_requests_per_hour=50, max_burst=10, clock=FakeClock())

    status = bucket.status()

    assert status == {
        "available_tokens": 10.0,
        "requests_in_last_hour": 0,
        "hourly_quota": 50,
        "is_limited": False,
    }


@pytest.mark.parametrize("quota, burst", [(0, 5), (50, 0)])
def test_token_bucket_rejects_non_positive_limits(quota: int, burst: int) -> None:
    with pytest.raises(ValueError):
        TokenBucket(max_requests_per_hour=quota, max_burst=burst)
