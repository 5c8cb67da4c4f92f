"""Sliding-window rate limiter shared by all requests in the process."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from studymate_chat.config import RateLimitConfig
from studymate_chat.errors import RateLimited


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float


def rate_key(session_id: str, forwarded_for: str | None) -> str:
    """Build the throttle key from the session and first forwarded origin."""
    origin = (forwarded_for or "").split(",")[0].strip()
    return f"ai-chat:{session_id}:{origin or 'anon'}"


class SlidingWindowRateLimiter:
    """Counts accepted requests per key over a rolling window.

    Only accepted requests occupy the window, so a caller that keeps hammering
    after being throttled is let back in as soon as its oldest accepted request
    ages out. Counters live in process memory and reset on restart.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window = self.config.window_seconds
        with self._lock:
            if len(self._hits) >= self.config.max_keys:
                self._prune(now)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - window:
                hits.popleft()

            if len(hits) >= self.config.max_requests:
                return RateLimitDecision(
                    allowed=False, remaining=0, reset_at=hits[0] + window
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                remaining=self.config.max_requests - len(hits),
                reset_at=hits[0] + window,
            )

    def check(self, key: str) -> RateLimitDecision:
        """Record a hit or raise `RateLimited` when the window is full."""
        decision = self.hit(key)
        if not decision.allowed:
            retry_after = max(1, math.ceil(decision.reset_at - self._clock()))
            raise RateLimited(
                "Too many requests. Try again in a minute.", retry_after=retry_after
            )
        return decision

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
