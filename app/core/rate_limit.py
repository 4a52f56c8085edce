"""Fixed-window request rate limiting.

Counters live in process memory: they reset on restart and are not shared
between server instances.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from app.core.exceptions import RateLimitExceededError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Allowed requests per window for one route scope."""

    max_requests: int
    window_seconds: int
    message: str = "Too many requests. Please try again later."


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


DEFAULT_LIMIT = RateLimitConfig(max_requests=5, window_seconds=5 * 60)

ROUTE_LIMITS: Dict[str, RateLimitConfig] = {
    "default": DEFAULT_LIMIT,
    "messaging": RateLimitConfig(30, 60, "Too many messages. Please slow down."),
    "uploads": RateLimitConfig(10, 60, "Too many uploads. Please wait before uploading again."),
    "contacts": RateLimitConfig(5, 5 * 60, "Too many contact requests. Please try again later."),
    "contact": RateLimitConfig(5, 5 * 60, "Too many requests. Please try again in 5 minutes."),
    "reactions": RateLimitConfig(60, 60, "Too many reactions. Please slow down."),
}


class FixedWindowRateLimiter:
    """Counts requests per key inside fixed windows.

    Expired windows are swept from ``check`` at most once per
    ``prune_interval`` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, prune_interval: float = 60.0):
        self._windows: Dict[str, RateLimitWindow] = {}
        self._clock = clock
        self._prune_interval = prune_interval
        self._next_prune_at = clock() + prune_interval

    def check(self, key: str, config: RateLimitConfig = DEFAULT_LIMIT) -> RateLimitResult:
        """Count one request against ``key`` and report whether it may proceed."""
        now = self._clock()
        if now >= self._next_prune_at:
            self.prune()

        window = self._windows.get(key)

        if window is None or now >= window.reset_at:
            window = RateLimitWindow(count=0, reset_at=now + config.window_seconds)
            self._windows[key] = window

        if window.count >= config.max_requests:
            retry_after = max(1, int(window.reset_at - now + 0.999))
            return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

        window.count += 1
        return RateLimitResult(allowed=True, remaining=config.max_requests - window.count, retry_after=0)

    def prune(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now = self._clock()
        self._next_prune_at = now + self._prune_interval
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()


rate_limiter = FixedWindowRateLimiter()


def client_identifier(request: Request) -> str:
    """First x-forwarded-for hop, else the peer address, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(request: Request, scope: str, limiter: Optional[FixedWindowRateLimiter] = None) -> RateLimitResult:
    """Apply the named limit to the calling client.

    Raises:
        RateLimitExceededError: If the client's window is exhausted.
    """
    config = ROUTE_LIMITS.get(scope, DEFAULT_LIMIT)
    key = f"{scope}:{client_identifier(request)}"
    result = (limiter or rate_limiter).check(key, config)
    if not result.allowed:
        LOGGER.warning(f"Rate limit exceeded for {key}")
        raise RateLimitExceededError(config.message, retry_after=result.retry_after)
    return result


def rate_limit(scope: str = "default"):
    """Create a dependency that applies a named rate limit.

    Example:
        @router.post("/signup", dependencies=[Depends(rate_limit("default"))])
    """

    async def limiter_dependency(request: Request) -> None:
        enforce_rate_limit(request, scope)

    return limiter_dependency
