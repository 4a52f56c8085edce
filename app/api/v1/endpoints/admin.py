"""Community admin console endpoints."""

from typing import Annotated, Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.endpoints.feedback import get_feedback_service
from app.core.auth import CommunityContext, get_community_context, require_admin, require_community_admin
from app.core.database import get_async_session as get_session
from app.schemas.admin import CommunitySettingsUpdate, MemberRoleUpdate, NotificationEdit
from app.schemas.complaint import FeedbackTemplateSave
from app.services.admin_service import AdminService
from app.services.feedback_service import FeedbackService
from app.services.notification_service import NotificationService

router = APIRouter()


async def get_admin_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AdminService:
    return AdminService(db_session)


async def get_notification_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> NotificationService:
    return NotificationService(db_session)


@router.get("/members", summary="Community members", operation_id="list_community_members")
async def list_members(
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    regenerate: bool = Query(False, description="Rotate the community join code first"),
) -> Dict[str, Any]:
    return await admin_service.list_members(context, regenerate=regenerate)


@router.put("/members/{user_id}", operation_id="update_member_role")
async def update_member_role(
    user_id: UUID,
    payload: MemberRoleUpdate,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.update_member_role(context, user_id, payload.role)


@router.delete("/members/{user_id}", operation_id="remove_member")
async def remove_member(
    user_id: UUID,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.remove_member(context, user_id)


@router.get("/dashboard", operation_id="get_admin_dashboard")
async def get_dashboard(
    context: Annotated[CommunityContext, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.dashboard(context)


@router.get("/audit-log", operation_id="get_audit_log")
async def get_audit_log(
    context: Annotated[CommunityContext, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    limit: int = Query(50, ge=1, le=500),
) -> List[Dict[str, Any]]:
    return await admin_service.audit_log(context, limit=limit)


@router.get("/settings", operation_id="get_community_settings")
async def get_settings(
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.get_settings(context)


@router.put("/settings", operation_id="update_community_settings")
async def update_settings(
    payload: CommunitySettingsUpdate,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.update_settings(context, payload)


@router.get("/analytics", operation_id="get_community_analytics")
async def get_analytics(
    context: Annotated[CommunityContext, Depends(require_admin)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    return await admin_service.analytics(context)


@router.put("/notifications", operation_id="edit_notification")
async def edit_notification(
    payload: NotificationEdit,
    context: Annotated[CommunityContext, Depends(require_admin)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    id: UUID = Query(..., description="Notification id"),
) -> Dict[str, Any]:
    return await notification_service.edit(id, payload.title, payload.message)


@router.get("/feedback-form", operation_id="get_feedback_form")
async def get_feedback_form(
    context: Annotated[CommunityContext, Depends(get_community_context)],
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)],
) -> Dict[str, Any]:
    """Readable by any community member."""
    return {"template": await feedback_service.get_form_template(context)}


@router.put("/feedback-form", operation_id="save_feedback_form")
async def save_feedback_form(
    payload: FeedbackTemplateSave,
    context: Annotated[CommunityContext, Depends(require_community_admin)],
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)],
) -> Dict[str, Any]:
    template = await feedback_service.save_form_template(context, payload)
    return {"template": template, "message": "Template saved successfully"}
