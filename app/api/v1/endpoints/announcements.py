"""Announcement endpoints for admins and members."""

from datetime import datetime
from typing import Annotated, Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.users import read_upload
from app.core.auth import CommunityContext, get_community_context, require_community_admin
from app.core.database import get_async_session as get_session
from app.services.announcement_service import AnnouncementService

admin_router = APIRouter()
user_router = APIRouter()


async def get_announcement_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AnnouncementService:
    return AnnouncementService(db_session)


@admin_router.get("", operation_id="list_admin_announcements")
async def list_admin_announcements(
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
    page: int = Query(1, ge=1),
    limit: int = Query(4, ge=1, le=100),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
) -> Dict[str, Any]:
    return await service.list_for_admin(context, page, limit, date_from, date_to)


@admin_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Publish an announcement",
    description="Multipart form; the optional image must be an image of at most 5MB",
    operation_id="create_announcement",
)
async def create_announcement(
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
    title: Annotated[str, Form()] = "",
    body: Annotated[Optional[str], Form()] = None,
    image: Annotated[Optional[UploadFile], File()] = None,
) -> Dict[str, Any]:
    payload = await read_upload(image) if image and image.filename else None
    return await service.create(context, title, body, payload)


@admin_router.get("/{announcement_id}", operation_id="get_announcement")
async def get_announcement(
    announcement_id: UUID,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
) -> Dict[str, Any]:
    return await service.get(context, announcement_id)


@admin_router.put("/{announcement_id}", operation_id="update_announcement")
async def update_announcement(
    announcement_id: UUID,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
    title: Annotated[Optional[str], Form()] = None,
    body: Annotated[Optional[str], Form()] = None,
    image: Annotated[Optional[UploadFile], File()] = None,
) -> Dict[str, Any]:
    payload = await read_upload(image) if image and image.filename else None
    return await service.update(context, announcement_id, title, body, payload)


@admin_router.delete("/{announcement_id}", operation_id="delete_announcement")
async def delete_announcement(
    announcement_id: UUID,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
) -> Dict[str, Any]:
    return await service.delete(context, announcement_id)


@user_router.get("", operation_id="list_member_announcements")
async def list_member_announcements(
    context: Annotated[CommunityContext, Depends(get_community_context)],
    service: Annotated[AnnouncementService, Depends(get_announcement_service)],
    page: int = Query(1, ge=1),
    limit: int = Query(4, ge=1, le=100),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
) -> Dict[str, Any]:
    return await service.list_for_member(context, page, limit, date_from, date_to)
