"""Guard middleware for the messaging API.

Rejects state-changing requests from origins outside the allow-list and
applies per-endpoint rate limits before the request reaches a route.
"""

from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.exceptions import RateLimitExceededError
from app.core.rate_limit import FixedWindowRateLimiter, enforce_rate_limit
from app.utils.logging import get_logger
from app.utils.responses import error_response

LOGGER = get_logger(__name__)

STATE_CHANGING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def rate_limit_scope(path: str, method: str) -> Optional[str]:
    """Which limit applies to a messaging request, if any."""
    if method != "POST":
        return None
    if "/attachments" in path or "/upload" in path:
        return "uploads"
    if "/reactions" in path:
        return "reactions"
    if "/contacts" in path:
        return "contacts"
    if "/messages" in path:
        return "messaging"
    return None


class MessagingGuardMiddleware(BaseHTTPMiddleware):
    """Origin check and rate limiting for ``/api/v1/messaging``."""

    def __init__(self, app, limiter: Optional[FixedWindowRateLimiter] = None):
        super().__init__(app)
        self.prefix = f"{settings.api_v1_prefix}/messaging"
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith(self.prefix) or request.method == "OPTIONS":
            return await call_next(request)

        if request.method in STATE_CHANGING_METHODS:
            origin = request.headers.get("origin")
            if origin not in settings.messaging.allowed_origins:
                LOGGER.warning(f"Rejected {request.method} {path} from origin {origin!r}")
                return error_response(403, "CSRF protection: Invalid origin")

        scope = rate_limit_scope(path, request.method)
        if scope:
            try:
                enforce_rate_limit(request, scope, limiter=self.limiter)
            except RateLimitExceededError as e:
                return error_response(
                    429, e.message, headers={"Retry-After": str(e.retry_after)}, retryAfter=e.retry_after
                )

        return await call_next(request)
