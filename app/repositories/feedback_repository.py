"""Repository for resident feedback."""

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Feedback, FeedbackFormTemplate
from app.repositories.base_repository import BaseRepository


class FeedbackRepository(BaseRepository[Feedback]):
    """Repository for Feedback operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Feedback)

    async def list_for_community(
        self,
        community_id: UUID,
        user_id: Optional[UUID] = None,
        limit: int = 50,
    ) -> List[Feedback]:
        stmt = select(Feedback).where(Feedback.community_id == community_id)
        if user_id is not None:
            stmt = stmt.where(Feedback.user_id == user_id)
        stmt = stmt.order_by(Feedback.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def average_rating(self, community_id: UUID) -> float:
        stmt = select(func.avg(Feedback.rating)).where(Feedback.community_id == community_id)
        value = (await self.session.execute(stmt)).scalar_one_or_none()
        return float(value) if value is not None else 0.0

    async def rating_distribution(self, community_id: UUID) -> Dict[int, int]:
        stmt = (
            select(Feedback.rating, func.count())
            .where(Feedback.community_id == community_id)
            .group_by(Feedback.rating)
        )
        result = await self.session.execute(stmt)
        return {rating: count for rating, count in result.all()}


class FeedbackTemplateRepository(BaseRepository[FeedbackFormTemplate]):
    """Repository for community feedback form templates."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, FeedbackFormTemplate)

    async def get_active(self, community_id: UUID) -> Optional[FeedbackFormTemplate]:
        stmt = (
            select(FeedbackFormTemplate)
            .where(FeedbackFormTemplate.community_id == community_id, FeedbackFormTemplate.is_active.is_(True))
            .order_by(FeedbackFormTemplate.updated_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
