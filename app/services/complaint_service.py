"""Resident complaints and their admin handling."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.models import Complaint
from app.repositories.audit_repository import AuditRepository
from app.repositories.complaint_repository import ComplaintRepository
from app.schemas.complaint import ComplaintCreate, ComplaintUpdate
from app.services.ai_service import score_sentiment
from app.services.notification_service import NotificationService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def serialize_complaint(row: Complaint) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "community_id": str(row.community_id),
        "user_id": str(row.user_id),
        "title": row.title,
        "description": row.description,
        "category": row.category,
        "status": row.status,
        "priority": row.priority,
        "sentiment": row.sentiment,
        "media_urls": row.media_urls or [],
        "resolution_message": row.resolution_message,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


class ComplaintService:
    """Service for complaint business rules."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.repository = ComplaintRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.notifications = NotificationService(db_session)

    async def list_complaints(
        self,
        context: Optional[CommunityContext],
        status: Optional[str] = None,
        category: Optional[str] = None,
        mine: bool = False,
    ) -> List[Dict[str, Any]]:
        if context is None:
            return []
        rows = await self.repository.list_for_community(
            context.community_id,
            status=status,
            category=category,
            user_id=context.user.id if mine else None,
        )
        return [serialize_complaint(row) for row in rows]

    async def create(self, context: Optional[CommunityContext], payload: ComplaintCreate) -> Dict[str, Any]:
        title = (payload.title or "").strip()
        description = (payload.description or "").strip()
        if not title or not description:
            raise ValidationError("Title and description are required")
        if context is None:
            raise PermissionDeniedError("User not in a community")

        row = await self.repository.create(
            community_id=context.community_id,
            user_id=context.user.id,
            title=title,
            description=description,
            category=payload.category or "other",
            status="pending",
            priority=0,
            sentiment=score_sentiment(f"{title} {description}"),
            media_urls=payload.media_urls or [],
        )
        await self.audit.record(context.user.id, "create", "complaints", row.id, {"title": title})
        LOGGER.info(f"Complaint {row.id} filed in community {context.community_id}")
        return serialize_complaint(row)

    async def _in_community(self, context: CommunityContext, complaint_id: UUID) -> Complaint:
        row = await self.repository.get_by_id(complaint_id)
        if not row or row.community_id != context.community_id:
            raise NotFoundError("Complaint not found")
        return row

    async def get(self, context: CommunityContext, complaint_id: UUID) -> Dict[str, Any]:
        row = await self._in_community(context, complaint_id)
        if not context.is_admin and row.user_id != context.user.id:
            raise PermissionDeniedError("Forbidden")
        return serialize_complaint(row)

    async def update(self, context: CommunityContext, complaint_id: UUID, payload: ComplaintUpdate) -> Dict[str, Any]:
        row = await self._in_community(context, complaint_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(row, field, value)
        await self.session.flush()

        await self.audit.record(context.user.id, "update", "complaints", row.id, changes)
        if "status" in changes:
            await self.notifications.notify(
                [row.user_id],
                "Complaint Status Updated",
                f'Your complaint "{row.title}" is now {row.status}.',
                type="complaint",
                link=f"/main/user/complaints/{row.id}",
            )
        return serialize_complaint(row)

    async def delete(self, context: CommunityContext, complaint_id: UUID) -> Dict[str, Any]:
        """Delete a resolved complaint.

        The membership role decides admin rights; the account role only
        applies when the membership carries none.
        """
        row = await self._in_community(context, complaint_id)
        if row.status != "resolved":
            raise ValidationError("Only resolved complaints can be deleted")

        role = context.member_role or context.account_role or ""
        if role.lower() != "admin":
            raise PermissionDeniedError("Admin access required")

        await self.repository.delete(row.id)
        await self.audit.record(context.user.id, "delete", "complaints", complaint_id, {"title": row.title})
        return {"success": True, "message": "Complaint deleted successfully"}
