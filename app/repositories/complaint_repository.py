"""Repository for resident complaints."""

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Complaint
from app.repositories.base_repository import BaseRepository


class ComplaintRepository(BaseRepository[Complaint]):
    """Repository for Complaint operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Complaint)

    async def list_for_community(
        self,
        community_id: UUID,
        status: Optional[str] = None,
        category: Optional[str] = None,
        user_id: Optional[UUID] = None,
        limit: Optional[int] = None,
    ) -> List[Complaint]:
        stmt = select(Complaint).where(Complaint.community_id == community_id)
        if status:
            stmt = stmt.where(Complaint.status == status)
        if category:
            stmt = stmt.where(Complaint.category == category)
        if user_id is not None:
            stmt = stmt.where(Complaint.user_id == user_id)
        stmt = stmt.order_by(Complaint.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by(self, community_id: UUID, column: str) -> Dict[str, int]:
        """Complaint counts grouped by a column such as status or category."""
        field = getattr(Complaint, column)
        stmt = (
            select(field, func.count())
            .where(Complaint.community_id == community_id)
            .group_by(field)
        )
        result = await self.session.execute(stmt)
        return {key: count for key, count in result.all()}

    async def get_titles(self, ids: List[UUID]) -> Dict[UUID, str]:
        if not ids:
            return {}
        result = await self.session.execute(select(Complaint.id, Complaint.title).where(Complaint.id.in_(ids)))
        return {row_id: title for row_id, title in result.all()}
