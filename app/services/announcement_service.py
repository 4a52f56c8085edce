"""Community announcements with optional images."""

import math
import time
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.models import Announcement
from app.repositories.announcement_repository import AnnouncementRepository
from app.repositories.audit_repository import AuditRepository
from app.repositories.community_repository import CommunityRepository
from app.schemas.common import FilePayload
from app.services.notification_service import NotificationService
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


def serialize_announcement(row: Announcement) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "community_id": str(row.community_id),
        "created_by": str(row.created_by) if row.created_by else None,
        "title": row.title,
        "body": row.body,
        "image_url": row.image_url,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


class AnnouncementService:
    """Service for announcement publishing and listing."""

    def __init__(self, db_session: AsyncSession, storage: Optional[StorageService] = None):
        self.session = db_session
        self.repository = AnnouncementRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.notifications = NotificationService(db_session)
        self.storage = storage or StorageService()
        self.bucket = settings.supabase.announcement_bucket

    async def _page(
        self,
        community_id: UUID,
        page: int,
        limit: int,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ):
        page = max(page, 1)
        limit = max(limit, 1)
        rows, total = await self.repository.paginate(community_id, page, limit, date_from, date_to)
        return [serialize_announcement(r) for r in rows], total, page, limit, math.ceil(total / limit)

    async def list_for_admin(
        self,
        context: CommunityContext,
        page: int = 1,
        limit: int = 4,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        items, total, page, _, pages = await self._page(context.community_id, page, limit, date_from, date_to)
        return {"announcements": items, "total": total, "totalPages": pages, "currentPage": page}

    async def list_for_member(
        self,
        context: CommunityContext,
        page: int = 1,
        limit: int = 4,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        items, total, page, limit, pages = await self._page(context.community_id, page, limit, date_from, date_to)
        return {"announcements": items, "total": total, "page": page, "limit": limit, "totalPages": pages}

    async def _upload_image(self, image: FilePayload) -> str:
        if not (image.content_type or "").startswith("image/"):
            raise ValidationError("Only image files are allowed")
        if image.size > settings.messaging.max_announcement_image_bytes:
            raise ValidationError("Image must be 5MB or smaller")

        path = f"announcement-{int(time.time() * 1000)}-{image.filename}"
        await self.storage.upload_file(image.content, self.bucket, path, image.content_type)
        return self.storage.get_public_url(self.bucket, path)

    async def _remove_image(self, image_url: Optional[str]) -> None:
        marker = f"/{self.bucket}/"
        if not image_url or marker not in image_url:
            return
        try:
            await self.storage.remove_files(self.bucket, [image_url.split(marker, 1)[1]])
        except Exception as e:
            LOGGER.warning(f"Failed to remove announcement image {image_url}: {e}")

    async def _owned(self, context: CommunityContext, announcement_id: UUID) -> Announcement:
        row = await self.repository.get_by_id(announcement_id)
        if not row:
            raise NotFoundError("Announcement not found")
        if row.community_id != context.community_id:
            raise PermissionDeniedError("Forbidden")
        return row

    async def create(
        self,
        context: CommunityContext,
        title: str,
        body: Optional[str] = None,
        image: Optional[FilePayload] = None,
    ) -> Dict[str, Any]:
        """Publish an announcement and notify every other member."""
        if not title or not title.strip():
            raise ValidationError("Title is required")

        image_url = await self._upload_image(image) if image else None
        row = await self.repository.create(
            community_id=context.community_id,
            created_by=context.user.id,
            title=title.strip(),
            body=body,
            image_url=image_url,
        )
        await self.audit.record(context.user.id, "create", "announcements", row.id, {"title": row.title})

        recipients = await self.communities.member_user_ids(context.community_id, exclude=context.user.id)
        await self.notifications.notify(
            recipients,
            f"New Announcement: {row.title}",
            (body or row.title)[:200],
            type="announcement",
            link="/main/user/announcements",
        )
        return serialize_announcement(row)

    async def get(self, context: CommunityContext, announcement_id: UUID) -> Dict[str, Any]:
        return serialize_announcement(await self._owned(context, announcement_id))

    async def update(
        self,
        context: CommunityContext,
        announcement_id: UUID,
        title: Optional[str] = None,
        body: Optional[str] = None,
        image: Optional[FilePayload] = None,
    ) -> Dict[str, Any]:
        row = await self._owned(context, announcement_id)

        if title is not None:
            if not title.strip():
                raise ValidationError("Title is required")
            row.title = title.strip()
        if body is not None:
            row.body = body
        if image:
            previous = row.image_url
            row.image_url = await self._upload_image(image)
            await self._remove_image(previous)

        await self.session.flush()
        await self.audit.record(context.user.id, "update", "announcements", row.id, {"title": row.title})
        return serialize_announcement(row)

    async def delete(self, context: CommunityContext, announcement_id: UUID) -> Dict[str, Any]:
        row = await self._owned(context, announcement_id)
        image_url = row.image_url
        await self.repository.delete(row.id)
        await self._remove_image(image_url)
        await self.audit.record(context.user.id, "delete", "announcements", announcement_id)
        return {"success": True, "message": "Announcement deleted successfully"}
