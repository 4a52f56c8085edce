"""Complaint and feedback request bodies."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ComplaintCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    media_urls: Optional[List[str]] = None


class ComplaintUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)
    resolution_message: Optional[str] = None
    category: Optional[str] = None


class FeedbackCreate(BaseModel):
    rating: Optional[Any] = None
    comment: Optional[str] = None
    form_data: Optional[Dict[str, Any]] = None
    template_id: Optional[str] = None


class FeedbackTemplateSave(BaseModel):
    id: Optional[UUID] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    fields: Optional[List[Dict[str, Any]]] = None
