from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from collections.abc import Callable

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600.0


class RateLimiter:
    """In-memory sliding window rate limiter keyed by caller."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._buckets: dict[str, deque[float]] = defaultdict(deque)

    def allow(self, key: str, limit: int, window_seconds: float) -> bool:
        now = self._clock()
        bucket = self._buckets[key]
        while bucket and now - bucket[0] > window_seconds:
            bucket.popleft()
        if len(bucket) >= limit:
            return False
        bucket.append(now)
        return True


class TokenBucket:
    """Token bucket with an additional trailing-hour quota.

    Tokens refill lazily on every check at ``max_requests_per_hour / 3600``
    tokens per second and never exceed ``max_burst``. A request is admitted
    only when a whole token is available and fewer than
    ``max_requests_per_hour`` admissions happened in the last hour. Callers
    get an immediate answer and apply their own fallback on refusal.

    State is mutated without locking; all callers run on one event loop.
    """

    def __init__(
        self,
        *,
        max_requests_per_hour: int = 50,
        max_burst: int = 10,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if max_requests_per_hour < 1 or max_burst < 1:
            raise ValueError("quota and burst must be positive")
        self._clock = clock or time.monotonic
        self._capacity = float(max_burst)
        self._hourly_quota = max_requests_per_hour
        self._refill_rate = max_requests_per_hour / HOUR_SECONDS
        self._tokens = float(max_burst)
        self._last_refill = self._clock()
        self._request_log: deque[float] = deque()

    @property
    def refill_interval(self) -> float:
        """Seconds needed to regain a single token."""

        return 1.0 / self._refill_rate

    @property
    def tokens(self) -> float:
        self._refill(self._clock())
        return self._tokens

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed * self._refill_rate)
            self._last_refill = now
        horizon = now - HOUR_SECONDS
        while self._request_log and self._request_log[0] <= horizon:
            self._request_log.popleft()

    def try_consume(self) -> bool:
        now = self._clock()
        self._refill(now)
        if self._tokens < 1:
            logger.warning("Rate limit reached (0 tokens available)")
            return False
        if len(self._request_log) >= self._hourly_quota:
            logger.warning("Hourly quota of %s requests exceeded", self._hourly_quota)
            return False
        self._tokens -= 1
        self._request_log.append(now)
        return True

    def status(self) -> dict[str, object]:
        now = self._clock()
        self._refill(now)
        return {
            "available_tokens": round(self._tokens, 3),
            "requests_in_last_hour": len(self._request_log),
            "hourly_quota": self._hourly_quota,
            "is_limited": self._tokens < 1 or len(self._request_log) >= self._hourly_quota,
        }


__all__ = ["RateLimiter", "TokenBucket"]
