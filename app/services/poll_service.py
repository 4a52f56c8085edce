"""Polls: creation, voting and questionnaire responses."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.models import Poll
from app.repositories.audit_repository import AuditRepository
from app.repositories.community_repository import CommunityRepository
from app.repositories.poll_repository import PollRepository
from app.schemas.poll import PollCreate, PollUpdate
from app.services.notification_service import NotificationService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

# A closed poll's deadline is pushed just into the past
CLOSE_OFFSET = timedelta(seconds=5)


def poll_status(poll: Poll, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return "closed" if poll.deadline and poll.deadline < now else "active"


def serialize_poll(poll: Poll) -> Dict[str, Any]:
    return {
        "id": str(poll.id),
        "community_id": str(poll.community_id),
        "created_by": str(poll.created_by) if poll.created_by else None,
        "title": poll.title,
        "description": poll.description,
        "deadline": poll.deadline.isoformat() if poll.deadline else None,
        "multiple_choice": poll.multiple_choice,
        "questions": poll.questions or [],
        "created_at": poll.created_at.isoformat() if poll.created_at else None,
        "status": poll_status(poll),
    }


def validate_responses(questions: List[Dict[str, Any]], responses: Dict[str, Any]) -> List[str]:
    """Problems with a questionnaire submission, one message per question."""
    errors = []
    for question in questions or []:
        answer = responses.get(question.get("id"))
        label = question.get("question", question.get("id"))
        blank = answer is None or (isinstance(answer, str) and not answer.strip())

        if question.get("required") and blank:
            errors.append(f'Question "{label}" is required')

        if question.get("type") == "radio" and not blank:
            if answer not in (question.get("options") or []):
                errors.append(f'Invalid option for question "{label}"')
    return errors


class PollService:
    """Service for poll business rules."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.repository = PollRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.notifications = NotificationService(db_session)

    async def list_polls(self, context: Optional[CommunityContext]) -> List[Dict[str, Any]]:
        if context is None:
            return []

        polls = await self.repository.list_for_community(context.community_id)
        counts = await self.repository.vote_counts([p.id for p in polls])
        return [{**serialize_poll(p), "vote_count": counts.get(p.id, 0)} for p in polls]

    async def create_poll(self, context: CommunityContext, payload: PollCreate) -> Dict[str, Any]:
        labels = [label.strip() for label in payload.options if label and label.strip()]
        if not payload.title.strip() or len(labels) < 2:
            raise ValidationError("Title and at least 2 options are required")

        poll = await self.repository.create(
            community_id=context.community_id,
            created_by=context.user.id,
            title=payload.title.strip(),
            description=payload.description,
            deadline=payload.deadline,
            multiple_choice=payload.multiple_choice,
            questions=[q.model_dump() for q in payload.questions] if payload.questions else None,
        )

        try:
            async with self.session.begin_nested():
                options = await self.repository.add_options(poll.id, labels)
        except Exception:
            LOGGER.error(f"Failed to create options for poll {poll.id}; removing poll", exc_info=True)
            await self.repository.delete(poll.id)
            raise

        await self.audit.record(context.user.id, "create", "polls", poll.id, {"title": poll.title})
        LOGGER.info(f"Poll {poll.id} created with {len(options)} options")
        return {
            **serialize_poll(poll),
            "options": [{"id": str(o.id), "label": o.label, "ord": o.ord} for o in options],
        }

    async def _get(self, poll_id: UUID) -> Poll:
        poll = await self.repository.get_by_id(poll_id)
        if not poll:
            raise NotFoundError("Poll not found")
        return poll

    async def _in_community(self, context: CommunityContext, poll_id: UUID) -> Poll:
        poll = await self._get(poll_id)
        if poll.community_id != context.community_id:
            raise PermissionDeniedError("Access denied")
        return poll

    async def get_poll(self, context: CommunityContext, poll_id: UUID) -> Dict[str, Any]:
        poll = await self._in_community(context, poll_id)
        options = await self.repository.get_options(poll.id)
        counts = await self.repository.option_counts(poll.id)
        user_votes = await self.repository.get_user_votes(poll.id, context.user.id)
        response = await self.repository.get_response(poll.id, context.user.id)
        responses = await self.repository.list_responses(poll.id)

        return {
            **serialize_poll(poll),
            "options": [
                {"id": str(o.id), "label": o.label, "ord": o.ord, "vote_count": counts.get(o.id, 0)}
                for o in options
            ],
            "vote_count": sum(counts.values()),
            "totalResponses": len(responses),
            "user_voted": bool(user_votes),
            "user_votes": [str(option_id) for option_id in user_votes],
            "user_responses": response.responses if response else None,
        }

    async def update_poll(self, context: CommunityContext, poll_id: UUID, payload: PollUpdate) -> Dict[str, Any]:
        poll = await self._in_community(context, poll_id)

        changes = payload.model_dump(exclude_unset=True, exclude={"status"})
        for field, value in changes.items():
            setattr(poll, field, value)

        if payload.status == "closed":
            poll.deadline = datetime.now(timezone.utc) - CLOSE_OFFSET
            admins = await self.communities.member_user_ids(context.community_id, roles=["Admin"])
            await self.notifications.notify(
                admins, "Poll Closed", f'The poll "{poll.title}" has been closed.', type="poll",
                link=f"/main/admin/polls/{poll.id}",
            )
        elif payload.status == "active" and poll.deadline and poll.deadline < datetime.now(timezone.utc):
            poll.deadline = None

        await self.session.flush()
        await self.audit.record(
            context.user.id, "update", "polls", poll.id, payload.model_dump(mode="json", exclude_unset=True)
        )
        return serialize_poll(poll)

    async def delete_poll(self, context: CommunityContext, poll_id: UUID) -> Dict[str, Any]:
        poll = await self._in_community(context, poll_id)
        title = poll.title
        await self.repository.delete(poll.id)
        await self.audit.record(context.user.id, "delete", "polls", poll_id, {"title": title})

        members = await self.communities.member_user_ids(context.community_id, exclude=context.user.id)
        await self.notifications.notify(members, "Poll Removed", f'The poll "{title}" has been removed.', type="poll")
        return {"success": True, "message": "Poll deleted successfully"}

    async def vote(self, context: Optional[CommunityContext], poll_id: UUID, option_ids: List[UUID]) -> Dict[str, Any]:
        """Record the caller's selection, replacing any earlier vote.

        Raises:
            ValidationError: Empty selection, closed poll, or several options on a single-select poll
            PermissionDeniedError: No membership, or the poll belongs to another community
            NotFoundError: Unknown poll
        """
        if not option_ids:
            raise ValidationError("At least one option must be selected")
        if context is None:
            raise PermissionDeniedError("Community membership required")

        poll = await self._get(poll_id)
        if poll_status(poll) == "closed":
            raise ValidationError("Poll is closed")
        if poll.community_id != context.community_id:
            raise PermissionDeniedError("Access denied")
        if not poll.multiple_choice and len(option_ids) > 1:
            raise ValidationError("Multiple selections not allowed")

        valid = {o.id for o in await self.repository.get_options(poll.id)}
        unknown = [str(option_id) for option_id in option_ids if option_id not in valid]
        if unknown:
            raise ValidationError("Invalid option selected", details=unknown)

        selection = list(dict.fromkeys(option_ids))
        recorded = await self.repository.replace_votes(poll.id, context.user.id, selection)
        return {"success": True, "message": "Vote recorded successfully", "votes": recorded}

    async def respond(
        self, context: Optional[CommunityContext], poll_id: UUID, responses: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not isinstance(responses, dict):
            raise ValidationError("Invalid response format")
        if context is None:
            raise PermissionDeniedError("Community membership required")

        poll = await self._get(poll_id)
        if poll_status(poll) == "closed":
            raise ValidationError("Poll is closed")
        if poll.community_id != context.community_id:
            raise PermissionDeniedError("Access denied")

        errors = validate_responses(poll.questions or [], responses)
        if errors:
            raise ValidationError("Validation errors", details=errors)

        existing = await self.repository.get_response(poll.id, context.user.id)
        await self.repository.upsert_response(poll.id, context.user.id, responses)
        message = "Response updated successfully" if existing else "Response submitted successfully"
        return {"success": True, "message": message}
