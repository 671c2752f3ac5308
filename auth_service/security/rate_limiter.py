"""Throttling of credential-bearing requests."""

from __future__ import annotations

import hashlib
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Protocol


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool: ...

    def reset(self, key: str) -> None: ...


def rate_key(scope: str, value: str) -> str:
    """Build a limiter key that never embeds the raw email or token."""
    digest = hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()[:16]
    return f"{scope}:{digest}"


class SlidingWindowRateLimiter:
    """Thread-safe in-process sliding window limiter."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: defaultdict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Record an attempt under ``key`` unless the window is already full."""
        now = self._clock()
        with self._lock:
            attempts = self._events[key]
            while attempts and now - attempts[0] >= self._window:
                attempts.popleft()
            if len(attempts) >= self._max_requests:
                return False
            attempts.append(now)
            return True

    def reset(self, key: str) -> None:
        """Forget the attempts recorded under ``key``."""
        with self._lock:
            self._events.pop(key, None)
