"""User profile, status and ID verification schemas."""

from typing import Literal

from pydantic import BaseModel, EmailStr, Field


class IdVerificationForm(BaseModel):
    """Identity details submitted with the two ID images."""

    full_name: str = Field(..., min_length=2, max_length=100)
    age: int = Field(..., ge=18, le=120)
    gender: Literal["male", "female", "other"]
    address: str = Field(..., min_length=10, max_length=500)
    id_number: str = Field(..., min_length=5, max_length=50)
    email: EmailStr


class StatusResponse(BaseModel):
    success: bool = True
    status: str


class IdVerificationResponse(BaseModel):
    success: bool = True
    message: str
    verification_id: str


class CommunityCountResponse(BaseModel):
    members: int
