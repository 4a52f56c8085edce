"""Messaging request bodies."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

MESSAGE_TYPES = ("text", "image", "file", "video", "gif", "voice")


class ConversationCreate(BaseModel):
    participantIds: List[UUID] = Field(default_factory=list)
    title: Optional[str] = None


class ContactCreate(BaseModel):
    userId: UUID


class MessageEdit(BaseModel):
    content: str = Field(..., min_length=1)


class ReactionRequest(BaseModel):
    reaction: str = Field(..., min_length=1, max_length=10)


class PinRequest(BaseModel):
    conversationId: UUID
    messageId: UUID


class ConversationSettingsUpdate(BaseModel):
    customTitle: Optional[str] = Field(None, max_length=100)
    isMuted: bool = False
    muteUntil: Optional[datetime] = None
