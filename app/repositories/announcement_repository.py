"""Repository for community announcements."""

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Announcement
from app.repositories.base_repository import BaseRepository


class AnnouncementRepository(BaseRepository[Announcement]):
    """Repository for Announcement operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Announcement)

    async def paginate(
        self,
        community_id: UUID,
        page: int = 1,
        limit: int = 4,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[List[Announcement], int]:
        """One page of a community's announcements, newest first, plus the total."""
        conditions = [Announcement.community_id == community_id]
        if date_from is not None:
            conditions.append(Announcement.created_at >= date_from)
        if date_to is not None:
            conditions.append(Announcement.created_at <= date_to)

        total = (
            await self.session.execute(select(func.count()).select_from(Announcement).where(*conditions))
        ).scalar_one()

        stmt = (
            select(Announcement)
            .where(*conditions)
            .order_by(Announcement.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
