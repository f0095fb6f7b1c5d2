"""Per-client token-bucket rate limiting."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import Request


class TokenBucket:
    """Allows ``burst`` requests at once, refilling at ``rate`` tokens per second."""

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if available."""
        with self._lock:
            now = self._clock()
            self._tokens = min(self._burst, self._tokens + (now - self._updated) * self._rate)
            self._updated = now
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False


class RateLimiterRegistry:
    """Lazily creates one bucket per client key.

    A single lock guards lookup-or-create; decisions on an existing bucket only
    take that bucket's own lock.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._rate > 0

    def bucket(self, key: str) -> TokenBucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self._rate, self._burst, self._clock)
                self._buckets[key] = bucket
            return bucket

    def allow(self, key: str) -> bool:
        if not self.enabled:
            return True
        return self.bucket(key).allow()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)


def client_key(request: Request) -> str:
    """Identify the caller: first X-Forwarded-For hop, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client is not None:
        return request.client.host
    return "unknown"
