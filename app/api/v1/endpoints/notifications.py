"""Notification endpoints."""

from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_async_session as get_session
from app.schemas.auth import CurrentUser
from app.services.notification_service import NotificationService

router = APIRouter()


class NotificationCreate(BaseModel):
    user_id: Optional[UUID] = None
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: str = "info"
    link: Optional[str] = None


class NotificationMarkRead(BaseModel):
    notificationIds: List[UUID] = Field(default_factory=list)


async def get_notification_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> NotificationService:
    return NotificationService(db_session)


@router.get("", summary="Unread notifications", operation_id="list_notifications")
async def list_notifications(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
) -> Dict[str, List[Dict[str, Any]]]:
    return {"notifications": await notification_service.list_unread(current_user.id)}


@router.post("", status_code=status.HTTP_201_CREATED, operation_id="create_notification")
async def create_notification(
    payload: NotificationCreate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
) -> Dict[str, Any]:
    notification = await notification_service.create(
        payload.user_id or current_user.id, payload.title, payload.message, payload.type, payload.link
    )
    return {"notification": notification}


@router.patch("", operation_id="mark_notifications_read")
async def mark_read(
    payload: NotificationMarkRead,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
) -> Dict[str, Any]:
    return await notification_service.mark_read(current_user.id, payload.notificationIds)


@router.delete("", operation_id="clear_notifications")
async def clear_notifications(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    clear: bool = Query(False),
) -> Dict[str, Any]:
    if not clear:
        return {"success": True, "deleted": 0}
    return await notification_service.clear(current_user.id)
