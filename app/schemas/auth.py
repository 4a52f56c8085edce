"""Authentication schemas for session tokens and account flows.

This module defines Pydantic models for session claims, the authenticated
caller, and the signup / verification / login request bodies.
"""

import re
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

PASSWORD_SPECIALS = "!@#$%^&*"
# bcrypt only accepts the first 72 bytes of a password
PASSWORD_MAX_BYTES = 72

Role = Literal["Admin", "Resident", "Guest"]


def check_new_password(value: str) -> str:
    """Validate a password chosen at signup."""
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one number")
    if not any(ch in PASSWORD_SPECIALS for ch in value):
        raise ValueError(f"Password must contain at least one special character ({PASSWORD_SPECIALS})")
    return value


class SessionClaims(BaseModel):
    """Decoded claims of a session token."""

    sub: str = Field(..., description="Subject (user ID)")
    email: EmailStr = Field(..., description="User email")
    name: Optional[str] = Field(None, description="Display name")
    role: str = Field(default="Guest", description="Resolved role at sign-in")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")


class CurrentUser(BaseModel):
    """Current authenticated user information."""

    id: UUID = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    name: Optional[str] = Field(None, description="User's display name")
    role: str = Field(default="Guest", description="Resolved role")


class SignupRequest(BaseModel):
    """Signup form body."""

    fullName: str = Field(..., min_length=2, description="Full name")
    email: EmailStr
    password: str = Field(..., min_length=8)
    communityCode: Optional[str] = Field(None, description="Community join code")
    role: Role = "Resident"
    terms: bool = Field(..., description="Terms of service accepted")

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_new_password(value)

    @field_validator("terms")
    @classmethod
    def terms_accepted(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the terms and conditions")
        return value


class VerifyEmailRequest(BaseModel):
    """Completes signup once the emailed code is confirmed."""

    fullName: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=8)
    communityCode: Optional[str] = None
    role: Role = "Resident"
    code: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_new_password(value)


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=1)


class ResendCodeRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserSummary(BaseModel):
    id: UUID
    email: EmailStr
    name: Optional[str] = None
    role: str
    status: str
    community_id: Optional[UUID] = None


class LoginResponse(BaseModel):
    access_token: str = Field(..., description="Session token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Lifetime in seconds")
    user: UserSummary


class MessageResponse(BaseModel):
    success: bool = True
    message: str
