"""Password hashing and one-time code generation."""

import hashlib
import secrets
import string

import bcrypt

from app.core.config import settings


def hash_password(password: str, rounds: int = None) -> str:
    """Hash a plaintext password with bcrypt.

    Args:
        password: Plaintext password
        rounds: bcrypt cost factor, defaults to the configured value

    Returns:
        str: UTF-8 encoded bcrypt hash
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.auth.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password over 72 bytes
        return False


def generate_verification_code(length: int = 6) -> str:
    """Generate a numeric verification code."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def text_hash(text: str) -> str:
    """md5 hex digest used as the memoization key for AI caches."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()
