"""Poll endpoints."""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CommunityContext,
    get_community_context,
    get_optional_community_context,
    require_admin,
    require_community_admin,
)
from app.core.database import get_async_session as get_session
from app.schemas.poll import PollCreate, PollRespondRequest, PollUpdate, PollVoteRequest
from app.services.poll_service import PollService

router = APIRouter()


async def get_poll_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> PollService:
    return PollService(db_session)


@router.get("", summary="Community polls", operation_id="list_polls")
async def list_polls(
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, List[Dict[str, Any]]]:
    return {"polls": await poll_service.list_polls(context)}


@router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_poll")
async def create_poll(
    payload: PollCreate,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    return {"poll": await poll_service.create_poll(context, payload)}


@router.get("/{poll_id}", operation_id="get_poll")
async def get_poll(
    poll_id: UUID,
    context: Annotated[CommunityContext, Depends(get_community_context)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    return {"poll": await poll_service.get_poll(context, poll_id)}


@router.put("/{poll_id}", operation_id="update_poll")
async def update_poll(
    poll_id: UUID,
    payload: PollUpdate,
    context: Annotated[CommunityContext, Depends(require_admin)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    """Edit a poll; ``status: "closed"`` ends voting immediately."""
    return {"poll": await poll_service.update_poll(context, poll_id, payload)}


@router.delete("/{poll_id}", operation_id="delete_poll")
async def delete_poll(
    poll_id: UUID,
    context: Annotated[CommunityContext, Depends(require_admin)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    return await poll_service.delete_poll(context, poll_id)


@router.post(
    "/{poll_id}/vote",
    summary="Vote on a poll",
    description="Replaces any earlier vote by the caller",
    operation_id="vote_on_poll",
)
async def vote(
    poll_id: UUID,
    payload: PollVoteRequest,
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    return await poll_service.vote(context, poll_id, payload.optionIds)


@router.post("/{poll_id}/respond", operation_id="respond_to_poll")
async def respond(
    poll_id: UUID,
    payload: PollRespondRequest,
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    poll_service: Annotated[PollService, Depends(get_poll_service)],
) -> Dict[str, Any]:
    return await poll_service.respond(context, poll_id, payload.responses)
