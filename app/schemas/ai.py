"""AI helper request bodies."""

from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field


class TextRequest(BaseModel):
    text: str = Field(..., min_length=1)


class AnomalyRequest(BaseModel):
    entity_type: str = Field(..., min_length=1)
    entity_id: Optional[str] = None
    data: Union[Dict[str, Any], List[Dict[str, Any]]]


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: Optional[UUID] = None


class ClassifyResponse(BaseModel):
    category: str
    confidence: float
    cached: bool


class SentimentResponse(BaseModel):
    sentiment: float
    confidence: float
    cached: bool
