"""Feedback endpoints."""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext, get_community_context, get_optional_community_context
from app.core.database import get_async_session as get_session
from app.schemas.complaint import FeedbackCreate
from app.services.feedback_service import FeedbackService

router = APIRouter()


async def get_feedback_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> FeedbackService:
    return FeedbackService(db_session)


@router.get("", operation_id="list_feedback")
async def list_feedback(
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)],
    my: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"feedback": await feedback_service.list_feedback(context, mine=my, limit=limit)}


@router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_feedback")
async def create_feedback(
    payload: FeedbackCreate,
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)],
) -> Dict[str, Any]:
    return {"feedback": await feedback_service.create(context, payload)}


@router.delete("", operation_id="delete_feedback")
async def delete_feedback(
    context: Annotated[CommunityContext, Depends(get_community_context)],
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)],
    id: UUID = Query(..., description="Feedback id"),
) -> Dict[str, Any]:
    return await feedback_service.delete(context, id)
