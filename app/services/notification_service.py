"""In-app notifications."""

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.database.models import Notification
from app.repositories.notification_repository import NotificationRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "link": notification.link,
        "read": notification.read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


class NotificationService:
    """Service for reading, creating and fanning out notifications."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.repository = NotificationRepository(db_session)

    async def list_unread(self, user_id: UUID) -> List[Dict[str, Any]]:
        rows = await self.repository.list_unread(user_id, limit=50)
        return [serialize_notification(row) for row in rows]

    async def create(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> Dict[str, Any]:
        row = await self.repository.create(user_id=user_id, title=title, message=message, type=type, link=link)
        return serialize_notification(row)

    async def mark_read(self, user_id: UUID, notification_ids: List[UUID]) -> Dict[str, Any]:
        if not notification_ids:
            raise ValidationError("notificationIds must be a non-empty array")
        updated = await self.repository.mark_read(user_id, notification_ids)
        return {"success": True, "updated": updated}

    async def clear(self, user_id: UUID) -> Dict[str, Any]:
        deleted = await self.repository.delete_for_user(user_id)
        return {"success": True, "deleted": deleted}

    async def edit(self, notification_id: UUID, title: str, message: str) -> Dict[str, Any]:
        row = await self.repository.update(notification_id, title=title, message=message)
        if not row:
            raise NotFoundError("Notification not found")
        return serialize_notification(row)

    async def notify(
        self,
        user_ids: Iterable[UUID],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> int:
        """Best-effort fan-out; a failure is logged and never aborts the caller."""
        recipients = list(user_ids)
        if not recipients:
            return 0
        try:
            async with self.session.begin_nested():
                return await self.repository.create_many(recipients, title, message, type=type, link=link)
        except Exception as e:
            LOGGER.warning(f"Failed to send '{title}' notifications: {e}", exc_info=True)
            return 0
