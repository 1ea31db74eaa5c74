"""Fixed-window, in-process rate limiting.

Each caller identifier owns one window: a request counter and the time the
window closes. Windows live in process memory only; with several workers
every worker counts independently.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from errors import RateLimitExceeded

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float = 60
    max_requests: int = 10


@dataclass
class RateLimitWindow:
    count: int
    window_end: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float
    limit: int


class FixedWindowRateLimiter:
    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def now(self) -> float:
        return self._clock()

    def check(self, identifier: str, config: RateLimitConfig = RateLimitConfig()) -> RateLimitResult:
        now = self._clock()

        if len(self._windows) > self.max_entries:
            self.cleanup(now)

        window = self._windows.get(identifier)

        if window is None or now >= window.window_end:
            window = RateLimitWindow(count=1, window_end=now + config.window_seconds)
            self._windows[identifier] = window
            return RateLimitResult(True, config.max_requests - 1, window.window_end, config.max_requests)

        if window.count >= config.max_requests:
            return RateLimitResult(False, 0, window.window_end, config.max_requests)

        window.count += 1
        return RateLimitResult(True, config.max_requests - window.count, window.window_end, config.max_requests)

    def cleanup(self, now: float | None = None) -> int:
        """Drop windows that have already closed."""
        now = self._clock() if now is None else now
        closed = [key for key, window in self._windows.items() if window.window_end <= now]
        for key in closed:
            del self._windows[key]
        if closed:
            logger.debug("Dropped %d closed rate limit windows", len(closed))
        return len(closed)

    def reset(self) -> None:
        self._windows.clear()


def client_identifier(request: Request) -> str:
    """Per-client-per-user key: forwarded (or connection) address plus user id."""
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    user_id = getattr(request.state, "user_id", None) or ANONYMOUS
    return f"{client_ip}:{user_id}"


async def enforce_rate_limit(request: Request) -> RateLimitResult | None:
    """FastAPI dependency: count the request, raise 429 once the window is full."""
    settings = request.app.state.settings
    if not settings.rate_limit_enabled:
        return None

    limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
    config = RateLimitConfig(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )
    key = client_identifier(request)
    result = limiter.check(key, config)

    if not result.allowed:
        retry_after = max(0, math.ceil(result.reset_time - limiter.now()))
        logger.warning("Rate limit exceeded for %s (%d/%ss)", key, config.max_requests, config.window_seconds)
        raise RateLimitExceeded(retry_after=retry_after, limit=config.max_requests)

    return result
