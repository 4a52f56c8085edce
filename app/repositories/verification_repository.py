"""Repositories for ID verification submissions and email verification codes."""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import EmailVerification, IdVerification
from app.repositories.base_repository import BaseRepository


class IdVerificationRepository(BaseRepository[IdVerification]):
    """Repository for IdVerification operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, IdVerification)

    async def get_latest_for_user(self, user_id: UUID) -> Optional[IdVerification]:
        stmt = (
            select(IdVerification)
            .where(IdVerification.user_id == user_id)
            .order_by(IdVerification.submitted_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_statuses(self, statuses: Sequence[str]) -> List[IdVerification]:
        """Submissions in any of the statuses, newest first."""
        stmt = (
            select(IdVerification)
            .where(IdVerification.status.in_(list(statuses)))
            .order_by(IdVerification.submitted_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_by_statuses(self, statuses: Sequence[str]) -> int:
        result = await self.session.execute(
            delete(IdVerification).where(IdVerification.status.in_(list(statuses)))
        )
        return result.rowcount or 0


class EmailVerificationRepository(BaseRepository[EmailVerification]):
    """Repository for pending email verification codes."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, EmailVerification)

    async def get_by_email(self, email: str) -> Optional[EmailVerification]:
        result = await self.session.execute(
            select(EmailVerification).where(EmailVerification.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def delete_by_email(self, email: str) -> None:
        await self.session.execute(
            delete(EmailVerification).where(EmailVerification.email == email.strip().lower())
        )
