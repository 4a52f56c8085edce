"""Session token issuing and verification.

Sessions are HS256 JWTs signed with ``AUTH_SECRET`` and accepted either as a
Bearer token or from the session cookie.
"""

import time
from typing import Optional

import jwt

from app.core.config import settings
from app.schemas.auth import SessionClaims
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SessionTokenService:
    """Issues and verifies session tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", max_age: int = 30 * 24 * 60 * 60):
        """Initialize the token service.

        Args:
            secret: Shared signing secret
            algorithm: JWT signing algorithm
            max_age: Session lifetime in seconds
        """
        self.secret = secret
        self.algorithm = algorithm
        self.max_age = max_age

    def issue_token(self, user_id: str, email: str, role: str, name: Optional[str] = None) -> str:
        """Create a signed session token for a user."""
        now = int(time.time())
        payload = {
            "sub": user_id,
            "email": email,
            "name": name,
            "role": role,
            "iat": now,
            "exp": now + self.max_age,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def verify_token(self, token: str) -> SessionClaims:
        """Verify and decode a session token.

        Args:
            token: Encoded session token

        Returns:
            SessionClaims: Decoded and validated claims

        Raises:
            jwt.InvalidTokenError: If the token is malformed, tampered with or expired
        """
        payload = jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
        try:
            return SessionClaims(**payload)
        except ValueError as e:
            LOGGER.warning(f"Session token carried unexpected claims: {e}")
            raise jwt.InvalidTokenError("Invalid session claims") from e


session_tokens = SessionTokenService(
    secret=settings.auth.secret,
    algorithm=settings.auth.algorithm,
    max_age=settings.auth.session_max_age,
)
