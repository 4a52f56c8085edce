"""Custom exception hierarchy.

Every error carries the HTTP status it maps to so the exception handlers in
``app.main`` can render a ``{"error": message}`` body without each route
translating errors by hand.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Raised when input validation fails."""
    status_code = 400


class ConflictError(ValidationError):
    """Raised when the request collides with existing state."""
    pass


class AuthenticationError(AppError):
    """Raised when the caller has no valid session."""
    status_code = 401


class PermissionDeniedError(AppError):
    """Raised when the caller lacks the role or membership for an action."""
    status_code = 403


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    status_code = 404


class RateLimitExceededError(AppError):
    """Raised when a client exceeds its request window."""

    status_code = 429

    def __init__(self, message: str = "Too many requests. Please try again later.", retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass
