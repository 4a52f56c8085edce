"""Complaint endpoints."""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext, get_community_context, get_optional_community_context, require_admin
from app.core.database import get_async_session as get_session
from app.schemas.complaint import ComplaintCreate, ComplaintUpdate
from app.services.complaint_service import ComplaintService

router = APIRouter()


async def get_complaint_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> ComplaintService:
    return ComplaintService(db_session)


@router.get("", operation_id="list_complaints")
async def list_complaints(
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    complaint_service: Annotated[ComplaintService, Depends(get_complaint_service)],
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    my: bool = Query(False, description="Only the caller's complaints"),
) -> Dict[str, List[Dict[str, Any]]]:
    complaints = await complaint_service.list_complaints(context, status_filter, category, mine=my)
    return {"complaints": complaints}


@router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_complaint")
async def create_complaint(
    payload: ComplaintCreate,
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
    complaint_service: Annotated[ComplaintService, Depends(get_complaint_service)],
) -> Dict[str, Any]:
    return {"complaint": await complaint_service.create(context, payload)}


@router.get("/{complaint_id}", operation_id="get_complaint")
async def get_complaint(
    complaint_id: UUID,
    context: Annotated[CommunityContext, Depends(get_community_context)],
    complaint_service: Annotated[ComplaintService, Depends(get_complaint_service)],
) -> Dict[str, Any]:
    return {"complaint": await complaint_service.get(context, complaint_id)}


@router.put("/{complaint_id}", operation_id="update_complaint")
async def update_complaint(
    complaint_id: UUID,
    payload: ComplaintUpdate,
    context: Annotated[CommunityContext, Depends(require_admin)],
    complaint_service: Annotated[ComplaintService, Depends(get_complaint_service)],
) -> Dict[str, Any]:
    return {"complaint": await complaint_service.update(context, complaint_id, payload)}


@router.delete("/{complaint_id}", operation_id="delete_complaint")
async def delete_complaint(
    complaint_id: UUID,
    context: Annotated[CommunityContext, Depends(get_community_context)],
    complaint_service: Annotated[ComplaintService, Depends(get_complaint_service)],
) -> Dict[str, Any]:
    """Only resolved complaints can be deleted, and only by an admin."""
    return await complaint_service.delete(context, complaint_id)
