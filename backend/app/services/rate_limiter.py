"""
In-memory sliding-window rate limiter.

Keyed by client IP. State lives on the instance, which is created once at
startup and stored on ``app.state``; it is not persisted and resets on
process restart.
"""
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` for each key."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._next_sweep = float("-inf")

    def check(self, key: str) -> RateLimitResult:
        """Record a hit for ``key`` unless it is over the limit."""
        now = self._clock()
        cutoff = now - self.window_seconds
        self._evict_expired(cutoff)
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= self.max_requests:
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                retry_after=self.window_seconds,
            )

        hits.append(now)
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(hits),
            retry_after=0,
        )

    def _evict_expired(self, cutoff: float) -> None:
        """Drop keys whose newest hit has left the window. Runs at most once per window."""
        if cutoff < self._next_sweep:
            return
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        self._next_sweep = cutoff + self.window_seconds

    def __len__(self) -> int:
        return len(self._hits)

    def reset(self) -> None:
        self._hits.clear()
