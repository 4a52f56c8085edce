"""Poll request bodies."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PollQuestion(BaseModel):
    """A questionnaire item attached to a poll."""

    id: str
    question: str
    type: str = "text"
    required: bool = False
    options: Optional[List[str]] = None


class PollCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    multiple_choice: bool = Field(default=False, alias="is_multi_select")
    options: List[str] = Field(default_factory=list)
    questions: Optional[List[PollQuestion]] = None

    model_config = {"populate_by_name": True}


class PollUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    status: Optional[Literal["closed", "active"]] = None


class PollVoteRequest(BaseModel):
    optionIds: List[UUID] = Field(default_factory=list)


class PollRespondRequest(BaseModel):
    responses: Dict[str, Any]
