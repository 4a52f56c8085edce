"""Community administration: members, settings, dashboard and analytics."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.database.models import Community
from app.repositories.announcement_repository import AnnouncementRepository
from app.repositories.audit_repository import AuditRepository
from app.repositories.community_repository import CommunityRepository
from app.repositories.complaint_repository import ComplaintRepository
from app.repositories.feedback_repository import FeedbackRepository
from app.repositories.poll_repository import PollRepository
from app.schemas.admin import CommunitySettingsUpdate
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 10


def complaint_priority(sentiment: Optional[float]) -> str:
    """Dashboard priority label derived from complaint sentiment."""
    if sentiment is None:
        return "low"
    if sentiment < -0.5:
        return "high"
    if sentiment < 0:
        return "medium"
    return "low"


def serialize_community(community: Community) -> Dict[str, Any]:
    return {
        "id": str(community.id),
        "name": community.name,
        "code": community.code,
        "description": community.description,
        "logo_url": community.logo_url,
        "created_at": community.created_at.isoformat() if community.created_at else None,
    }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AdminService:
    """Service for the community admin console."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.communities = CommunityRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.polls = PollRepository(db_session)
        self.complaints = ComplaintRepository(db_session)
        self.feedback = FeedbackRepository(db_session)
        self.announcements = AnnouncementRepository(db_session)

    async def _community(self, context: CommunityContext) -> Community:
        community = await self.communities.get_by_id(context.community_id)
        if not community:
            raise NotFoundError("Community not found")
        return community

    async def list_members(self, context: CommunityContext, regenerate: bool = False) -> Dict[str, Any]:
        """Members and role counts; optionally rotate the join code first."""
        community = await self._community(context)

        if regenerate:
            old_code = community.code
            community.code = await self.communities.next_admin_code()
            await self.session.flush()
            await self.audit.record(
                context.user.id, "regenerate_code", "communities", community.id,
                {"old_code": old_code, "new_code": community.code},
            )
            LOGGER.info(f"Community {community.id} code rotated to {community.code}")

        rows = await self.communities.list_members(community.id)
        members = [
            {
                "id": str(user.id),
                "membership_id": str(member.id),
                "name": user.name,
                "email": user.email,
                "image": user.image,
                "role": member.role,
                "status": user.status,
                "joined_at": _iso(member.joined_at),
            }
            for member, user in rows
        ]
        return {
            "members": members,
            "community": serialize_community(community),
            "stats": {
                "total": len(members),
                "admins": sum(1 for m in members if m["role"] == "Admin"),
                "residents": sum(1 for m in members if m["role"] == "Resident"),
            },
        }

    async def update_member_role(self, context: CommunityContext, user_id: UUID, role: str) -> Dict[str, Any]:
        if user_id == context.user.id:
            raise ValidationError("You cannot change your own role")

        member = await self.communities.get_member(context.community_id, user_id)
        if not member:
            raise NotFoundError("Member not found")

        previous = member.role
        member.role = role
        await self.session.flush()
        await self.audit.record(
            context.user.id, "update_member_role", "community_members", member.id,
            {"user_id": str(user_id), "from": previous, "to": role},
        )
        return {"success": True, "message": "Member role updated", "role": role}

    async def remove_member(self, context: CommunityContext, user_id: UUID) -> Dict[str, Any]:
        if user_id == context.user.id:
            raise ValidationError("You cannot remove yourself from the community")

        if not await self.communities.remove_member(context.community_id, user_id):
            raise NotFoundError("Member not found")

        await self.audit.record(
            context.user.id, "remove_member", "community_members", user_id,
            {"community_id": str(context.community_id)},
        )
        return {"success": True, "message": "Member removed from community"}

    async def dashboard(self, context: CommunityContext) -> Dict[str, Any]:
        community_id = context.community_id
        since = datetime.now(timezone.utc) - timedelta(days=30)
        scope = {"community_id": community_id}

        complaints = await self.complaints.list_for_community(community_id, limit=RECENT_ACTIVITY_LIMIT)
        polls = await self.polls.list_for_community(community_id, limit=RECENT_ACTIVITY_LIMIT)
        feedback = await self.feedback.list_for_community(community_id, limit=RECENT_ACTIVITY_LIMIT)
        announcements, _ = await self.announcements.paginate(community_id, page=1, limit=RECENT_ACTIVITY_LIMIT)

        activity: List[Dict[str, Any]] = []
        activity += [
            {
                "type": "complaint",
                "id": str(c.id),
                "title": c.title,
                "status": c.status,
                "priority": complaint_priority(c.sentiment),
                "created_at": c.created_at,
            }
            for c in complaints
        ]
        activity += [{"type": "poll", "id": str(p.id), "title": p.title, "created_at": p.created_at} for p in polls]
        activity += [
            {"type": "feedback", "id": str(f.id), "title": f"Rated {f.rating}/5", "created_at": f.created_at}
            for f in feedback
        ]
        activity += [
            {"type": "announcement", "id": str(a.id), "title": a.title, "created_at": a.created_at}
            for a in announcements
        ]
        activity.sort(key=lambda item: item["created_at"], reverse=True)
        recent = [{**item, "created_at": _iso(item["created_at"])} for item in activity[:RECENT_ACTIVITY_LIMIT]]

        return {
            "stats": {
                "totalMembers": await self.communities.count_members(community_id),
                "newMembers": await self.communities.count_members(community_id, since=since),
                "totalPolls": await self.polls.count(scope),
                "totalComplaints": await self.complaints.count(scope),
                "pendingComplaints": await self.complaints.count({**scope, "status": "pending"}),
                "totalFeedback": await self.feedback.count(scope),
                "averageRating": round(await self.feedback.average_rating(community_id), 1),
            },
            "recentActivity": recent,
        }

    async def audit_log(self, context: CommunityContext, limit: int = 50) -> List[Dict[str, Any]]:
        """Recent audit entries written by members of the caller's community."""
        actor_ids = await self.communities.member_user_ids(context.community_id)
        rows = await self.audit.list_recent(limit=limit, actor_ids=actor_ids)
        return [
            {
                "id": str(row.id),
                "actor_id": str(row.actor_id) if row.actor_id else None,
                "action": row.action,
                "target_table": row.target_table,
                "target_id": row.target_id,
                "payload": row.payload,
                "created_at": _iso(row.created_at),
            }
            for row in rows
        ]

    async def get_settings(self, context: CommunityContext) -> Dict[str, Any]:
        return serialize_community(await self._community(context))

    async def update_settings(self, context: CommunityContext, payload: CommunitySettingsUpdate) -> Dict[str, Any]:
        community = await self._community(context)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        if "code" in changes:
            code = changes["code"].strip().upper()
            if code != community.code and await self.communities.code_exists(code):
                raise ConflictError("Community code already in use")
            changes["code"] = code

        for field, value in changes.items():
            setattr(community, field, value)
        await self.session.flush()

        await self.audit.record(context.user.id, "update_settings", "communities", community.id, changes)
        return serialize_community(community)

    async def analytics(self, context: CommunityContext) -> Dict[str, Any]:
        community_id = context.community_id
        distribution = await self.feedback.rating_distribution(community_id)
        member_count = await self.communities.count_members(community_id)

        participation = []
        for poll in await self.polls.list_for_community(community_id):
            voters = await self.polls.voter_count(poll.id)
            participation.append(
                {
                    "id": str(poll.id),
                    "title": poll.title,
                    "voters": voters,
                    "participationRate": round(voters / member_count * 100, 1) if member_count else 0.0,
                }
            )

        return {
            "complaints": {
                "byCategory": await self.complaints.count_by(community_id, "category"),
                "byStatus": await self.complaints.count_by(community_id, "status"),
            },
            "feedback": {
                "ratingDistribution": {str(rating): distribution.get(rating, 0) for rating in range(1, 6)},
                "averageRating": round(await self.feedback.average_rating(community_id), 1),
            },
            "polls": participation,
            "members": member_count,
        }
