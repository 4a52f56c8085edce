"""Repository for in-app notifications."""

from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Notification
from app.repositories.base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Notification)

    async def list_unread(self, user_id: UUID, limit: int = 50) -> List[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, user_id: UUID) -> int:
        stmt = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id, Notification.read.is_(False)
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def mark_read(self, user_id: UUID, notification_ids: Sequence[UUID]) -> int:
        """Mark the caller's notifications read; returns how many changed."""
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.id.in_(list(notification_ids)))
            .values(read=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(delete(Notification).where(Notification.user_id == user_id))
        return result.rowcount or 0

    async def create_many(
        self,
        user_ids: Iterable[UUID],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> int:
        """Fan out one notification per recipient."""
        rows = [
            Notification(user_id=user_id, title=title, message=message, type=type, link=link)
            for user_id in user_ids
        ]
        if not rows:
            return 0
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)
