"""Repository for communities and their memberships."""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Community, CommunityMember, User
from app.repositories.base_repository import BaseRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

ADMIN_CODE_PREFIX = "ADMIN"


class CommunityRepository(BaseRepository[Community]):
    """Repository for Community and CommunityMember operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Community)

    async def get_by_code(self, code: str) -> Optional[Community]:
        """Look up a community by join code, ignoring case and padding.

        Codes are stored uppercase.
        """
        stmt = select(Community).where(Community.code == code.strip().upper())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        result = await self.session.execute(select(Community.id).where(Community.code == code))
        return result.first() is not None

    async def next_admin_code(self) -> str:
        """First unused code of the form ADMIN001, ADMIN002, ..."""
        counter = 1
        while True:
            candidate = f"{ADMIN_CODE_PREFIX}{counter:03d}"
            if not await self.code_exists(candidate):
                return candidate
            counter += 1

    async def get_membership(self, user_id: UUID) -> Optional[CommunityMember]:
        """The caller's community membership (users belong to one community)."""
        stmt = (
            select(CommunityMember)
            .where(CommunityMember.user_id == user_id)
            .order_by(CommunityMember.joined_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_member(self, community_id: UUID, user_id: UUID) -> Optional[CommunityMember]:
        stmt = select(CommunityMember).where(
            CommunityMember.community_id == community_id,
            CommunityMember.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_member(self, community_id: UUID, user_id: UUID, role: str) -> CommunityMember:
        member = CommunityMember(community_id=community_id, user_id=user_id, role=role)
        self.session.add(member)
        await self.session.flush()
        return member

    async def remove_member(self, community_id: UUID, user_id: UUID) -> bool:
        member = await self.get_member(community_id, user_id)
        if not member:
            return False
        await self.session.delete(member)
        await self.session.flush()
        return True

    async def remove_memberships(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(CommunityMember).where(CommunityMember.user_id == user_id)
        )
        members = list(result.scalars().all())
        for member in members:
            await self.session.delete(member)
        await self.session.flush()
        return len(members)

    async def count_members(self, community_id: UUID, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(CommunityMember).where(
            CommunityMember.community_id == community_id
        )
        if since is not None:
            stmt = stmt.where(CommunityMember.joined_at >= since)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_members(self, community_id: UUID) -> List[Tuple[CommunityMember, User]]:
        """Memberships joined with their user rows."""
        stmt = (
            select(CommunityMember, User)
            .join(User, User.id == CommunityMember.user_id)
            .where(CommunityMember.community_id == community_id)
            .order_by(User.name)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def member_user_ids(
        self,
        community_id: UUID,
        roles: Optional[Sequence[str]] = None,
        exclude: Optional[UUID] = None,
    ) -> List[UUID]:
        """User ids of members, optionally filtered by community role."""
        stmt = select(CommunityMember.user_id).where(CommunityMember.community_id == community_id)
        if roles:
            stmt = stmt.where(CommunityMember.role.in_(list(roles)))
        if exclude is not None:
            stmt = stmt.where(CommunityMember.user_id != exclude)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_admin_community(self, user_id: UUID) -> Optional[Community]:
        """The community in which the user holds the Admin role."""
        stmt = (
            select(Community)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .where(CommunityMember.user_id == user_id, CommunityMember.role == "Admin")
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
