"""Admin request bodies."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.auth import Role


class VerificationActionRequest(BaseModel):
    action: str = Field(..., min_length=1)
    id: Optional[UUID] = None


class MemberRoleUpdate(BaseModel):
    role: Role


class CommunitySettingsUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    code: Optional[str] = Field(None, min_length=3, max_length=20)
    logo_url: Optional[str] = None


class NotificationEdit(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
