"""Repository for user data access operations."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import User
from app.repositories.base_repository import BaseRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User entity operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address (case-insensitive)."""
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_role(self, role: str) -> List[User]:
        """All users whose global role matches."""
        result = await self.session.execute(select(User).where(User.role == role))
        return list(result.scalars().all())

    async def set_status(self, user_id: UUID, status: str) -> None:
        await self.session.execute(update(User).where(User.id == user_id).values(status=status))

    async def set_last_reminder(self, user_id: UUID, when: datetime) -> None:
        await self.session.execute(
            update(User).where(User.id == user_id).values(last_reminder_at=when)
        )
