"""Repository for polls, their options, votes and questionnaire responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Poll, PollOption, PollResponse, PollVote
from app.repositories.base_repository import BaseRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PollRepository(BaseRepository[Poll]):
    """Repository for Poll aggregate operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Poll)

    async def list_for_community(self, community_id: UUID, limit: Optional[int] = None) -> List[Poll]:
        stmt = select(Poll).where(Poll.community_id == community_id).order_by(Poll.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_active(self, community_id: UUID, now: datetime) -> int:
        stmt = select(func.count()).select_from(Poll).where(
            Poll.community_id == community_id,
            or_(Poll.deadline.is_(None), Poll.deadline > now),
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def vote_counts(self, poll_ids: Sequence[UUID]) -> Dict[UUID, int]:
        """Number of vote rows per poll."""
        if not poll_ids:
            return {}
        stmt = (
            select(PollVote.poll_id, func.count())
            .where(PollVote.poll_id.in_(list(poll_ids)))
            .group_by(PollVote.poll_id)
        )
        result = await self.session.execute(stmt)
        return {poll_id: count for poll_id, count in result.all()}

    async def voter_count(self, poll_id: UUID) -> int:
        stmt = select(func.count(func.distinct(PollVote.user_id))).where(PollVote.poll_id == poll_id)
        return (await self.session.execute(stmt)).scalar_one()

    async def get_options(self, poll_id: UUID) -> List[PollOption]:
        stmt = select(PollOption).where(PollOption.poll_id == poll_id).order_by(PollOption.ord)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_options(self, poll_id: UUID, labels: Sequence[str]) -> List[PollOption]:
        options = [PollOption(poll_id=poll_id, label=label, ord=index) for index, label in enumerate(labels)]
        self.session.add_all(options)
        await self.session.flush()
        return options

    async def option_counts(self, poll_id: UUID) -> Dict[UUID, int]:
        stmt = (
            select(PollVote.option_id, func.count())
            .where(PollVote.poll_id == poll_id)
            .group_by(PollVote.option_id)
        )
        result = await self.session.execute(stmt)
        return {option_id: count for option_id, count in result.all()}

    async def get_user_votes(self, poll_id: UUID, user_id: UUID) -> List[UUID]:
        stmt = select(PollVote.option_id).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def replace_votes(self, poll_id: UUID, user_id: UUID, option_ids: Sequence[UUID]) -> int:
        """Drop the user's earlier votes on the poll, then record the new selection."""
        await self.session.execute(
            delete(PollVote).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
        )
        self.session.add_all(
            [PollVote(poll_id=poll_id, user_id=user_id, option_id=option_id) for option_id in option_ids]
        )
        await self.session.flush()
        return len(option_ids)

    async def get_response(self, poll_id: UUID, user_id: UUID) -> Optional[PollResponse]:
        stmt = select(PollResponse).where(PollResponse.poll_id == poll_id, PollResponse.user_id == user_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list_responses(self, poll_id: UUID) -> List[PollResponse]:
        result = await self.session.execute(select(PollResponse).where(PollResponse.poll_id == poll_id))
        return list(result.scalars().all())

    async def upsert_response(self, poll_id: UUID, user_id: UUID, responses: Dict[str, Any]) -> PollResponse:
        existing = await self.get_response(poll_id, user_id)
        if existing:
            existing.responses = responses
            await self.session.flush()
            return existing
        row = PollResponse(poll_id=poll_id, user_id=user_id, responses=responses)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_titles(self, ids: List[UUID]) -> Dict[UUID, str]:
        if not ids:
            return {}
        result = await self.session.execute(select(Poll.id, Poll.title).where(Poll.id.in_(ids)))
        return {row_id: title for row_id, title in result.all()}
