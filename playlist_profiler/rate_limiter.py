"""Rate limiting shared by every request made with one Spotify credential.

Spotify enforces a single rolling budget per app/token, so all fetch workers
share one :class:`RateLimiter`.  It keeps a minimum interval between calls,
stretches that interval after consecutive errors, and holds a global
"blocked until" timestamp that a 429 response pushes forward for everyone.

Usage::

    limiter = RateLimiter(min_interval=0.3)

    for chunk in chunks:
        await limiter.wait()   # sleeps if needed
        ...make the call...
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from playlist_profiler import config

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff schedule: ``min(cap, base * 2**attempt) + jitter``."""

    base: float = config.BACKOFF_BASE
    cap: float = config.BACKOFF_CAP
    jitter: float = config.BACKOFF_JITTER
    max_attempts: int = config.MAX_RETRIES

    def delay(self, attempt: int) -> float:
        return min(self.cap, self.base * (2 ** attempt)) + self.jitter

    def wait_for(self, attempt: int, retry_after: Optional[str] = None) -> float:
        """Delay before the next attempt, honouring a ``Retry-After`` hint."""
        hint = parse_retry_after(retry_after)
        if hint is not None:
            return hint
        return self.delay(attempt)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds; ``None`` if unusable."""
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


class RateLimiter:
    """Minimum-interval limiter with a shared backoff flag."""

    # Cap on the interval multiplier applied after consecutive errors.
    _MAX_CONSECUTIVE_ERRORS = 3

    def __init__(
        self,
        min_interval: float = config.MIN_REQUEST_INTERVAL,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")

        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_call: Optional[float] = None
        self._blocked_until = 0.0
        self._consecutive_errors = 0
        self._lock = asyncio.Lock()

        self.total_waits = 0
        self.total_wait_time = 0.0

    @property
    def is_blocked(self) -> bool:
        return self.clock() < self._blocked_until

    def _interval(self) -> float:
        return self.min_interval * (2 ** self._consecutive_errors)

    async def wait(self) -> None:
        """Wait until a request may be issued, then claim the slot."""
        async with self._lock:
            now = self.clock()
            ready_at = self._blocked_until
            if self._last_call is not None:
                ready_at = max(ready_at, self._last_call + self._interval())

            if ready_at > now:
                pause = ready_at - now
                self.total_waits += 1
                self.total_wait_time += pause
                await self.sleep(pause)

            self._last_call = self.clock()

    def block_for(self, seconds: float) -> None:
        """Hold every caller back for ``seconds`` (e.g. after a 429)."""
        until = self.clock() + max(0.0, seconds)
        if until > self._blocked_until:
            self._blocked_until = until
            logger.warning("Rate limiter blocked for %.1fs", seconds)

    def record_error(self) -> None:
        self._consecutive_errors = min(self._consecutive_errors + 1, self._MAX_CONSECUTIVE_ERRORS)

    def record_success(self) -> None:
        self._consecutive_errors = 0

    def get_stats(self) -> dict:
        """Get statistics about rate limiting"""
        return {
            "total_waits": self.total_waits,
            "total_wait_time": self.total_wait_time,
            "avg_wait_time": self.total_wait_time / self.total_waits if self.total_waits > 0 else 0,
            "consecutive_errors": self._consecutive_errors,
            "blocked": self.is_blocked,
        }
