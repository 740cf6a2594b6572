"""
In-memory rate limiter for guesses and wallet updates.

Restarts reset state; this only stops accidental spam.
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter:
    """Allow N events per sliding window per (scope, channel, user)."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[tuple[str, str, str], list[float]] = {}

    def check(
        self, *, scope: str, channel_id: str, user_id: str, limit: int, per_seconds: int
    ) -> RateLimitResult:
        now = self._clock()
        key = (scope, channel_id, user_id)
        hits = [t for t in self._hits.get(key, []) if t >= now - per_seconds]

        if len(hits) >= limit:
            retry_after = int(max(0.0, (min(hits) + per_seconds) - now) + 0.999)
            self._hits[key] = hits
            return RateLimitResult(allowed=False, retry_after_seconds=retry_after)

        hits.append(now)
        self._hits[key] = hits
        return RateLimitResult(allowed=True)


GLOBAL_RATE_LIMITER = RateLimiter()
