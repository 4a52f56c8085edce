"""Community feedback, including template-driven forms."""

import re
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext
from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.models import Feedback, FeedbackFormTemplate
from app.repositories.audit_repository import AuditRepository
from app.repositories.complaint_repository import ComplaintRepository
from app.repositories.feedback_repository import FeedbackRepository, FeedbackTemplateRepository
from app.repositories.poll_repository import PollRepository
from app.schemas.complaint import FeedbackCreate, FeedbackTemplateSave
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_rating(form_data: Dict[str, Any]) -> Optional[int]:
    """First numeric form value within 1-5."""
    for value in form_data.values():
        if _is_number(value) and 1 <= value <= 5:
            return int(value)
    return None


def extract_comment(form_data: Dict[str, Any]) -> Optional[str]:
    """First free-text form value longer than 10 characters."""
    for value in form_data.values():
        if isinstance(value, str) and len(value) > 10:
            return value
    return None


def describe_feedback(row: Feedback, titles: Dict[UUID, str]) -> str:
    """Human readable summary of a feedback row.

    UUID values are replaced by the title of the complaint or poll they point at.
    """
    if row.form_data and isinstance(row.form_data, dict):
        parts = []
        for key, value in row.form_data.items():
            if not isinstance(value, str) or not value:
                continue
            label = key[:1].upper() + key[1:]
            if UUID_PATTERN.match(value):
                title = titles.get(UUID(value))
                if title:
                    parts.append(f"{label}: {title}.")
            else:
                parts.append(f"{label}: {value}.")
        return " ".join(parts) or "Form data submitted without details"
    if row.comment:
        return row.comment
    return "No details provided"


def serialize_feedback(row: Feedback, resolved_details: str) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "community_id": str(row.community_id),
        "user_id": str(row.user_id),
        "rating": row.rating,
        "comment": row.comment,
        "form_data": row.form_data,
        "template_id": row.template_id,
        "resolved_details": resolved_details,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


DEFAULT_FORM_TEMPLATE: Dict[str, Any] = {
    "id": "",
    "title": "Client Satisfaction Form",
    "subtitle": "Your feedback helps us improve our services",
    "fields": [
        {
            "id": "rating",
            "type": "rating",
            "label": "How satisfied are you with our service?",
            "required": True,
            "options": {
                "max": 5,
                "emojis": ["\U0001F621", "\U0001F61E", "\U0001F610", "\U0001F60A", "\U0001F604"],
                "labels": ["Very Poor", "Poor", "Good", "Very Good", "Excellent"],
            },
        },
        {
            "id": "comment",
            "type": "textarea",
            "label": "Comments/Suggestions/Feedback?",
            "required": False,
            "placeholder": "Please share your thoughts...",
        },
    ],
}


def serialize_template(template: FeedbackFormTemplate) -> Dict[str, Any]:
    return {
        "id": str(template.id),
        "title": template.title,
        "subtitle": template.subtitle,
        "fields": template.fields or [],
        "is_active": template.is_active,
        "updated_at": template.updated_at.isoformat() if template.updated_at else None,
    }


class FeedbackService:
    """Service for feedback business rules."""

    def __init__(self, db_session: AsyncSession):
        self.session = db_session
        self.repository = FeedbackRepository(db_session)
        self.templates = FeedbackTemplateRepository(db_session)
        self.complaints = ComplaintRepository(db_session)
        self.polls = PollRepository(db_session)
        self.audit = AuditRepository(db_session)

    async def _referenced_titles(self, rows: List[Feedback]) -> Dict[UUID, str]:
        ids = {
            UUID(value)
            for row in rows
            if isinstance(row.form_data, dict)
            for value in row.form_data.values()
            if isinstance(value, str) and UUID_PATTERN.match(value)
        }
        if not ids:
            return {}
        titles = await self.complaints.get_titles(list(ids))
        missing = [i for i in ids if i not in titles]
        titles.update(await self.polls.get_titles(missing))
        return titles

    async def list_feedback(
        self, context: Optional[CommunityContext], mine: bool = False, limit: int = 50
    ) -> List[Dict[str, Any]]:
        if context is None:
            return []
        rows = await self.repository.list_for_community(
            context.community_id, user_id=context.user.id if mine else None, limit=limit
        )
        titles = await self._referenced_titles(rows)
        return [serialize_feedback(row, describe_feedback(row, titles)) for row in rows]

    async def create(self, context: Optional[CommunityContext], payload: FeedbackCreate) -> Dict[str, Any]:
        if payload.form_data and payload.template_id:
            rating = extract_rating(payload.form_data)
            comment = extract_comment(payload.form_data)
        else:
            rating = payload.rating
            comment = payload.comment

        if not _is_number(rating) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if context is None:
            raise PermissionDeniedError("User not in a community")

        row = await self.repository.create(
            community_id=context.community_id,
            user_id=context.user.id,
            rating=int(rating),
            comment=comment,
            form_data=payload.form_data,
            template_id=payload.template_id,
        )
        await self.audit.record(
            context.user.id, "create", "feedback", row.id,
            {"template_id": payload.template_id, "has_rating": True, "has_comment": bool(comment)},
        )
        titles = await self._referenced_titles([row])
        return serialize_feedback(row, describe_feedback(row, titles))

    async def delete(self, context: CommunityContext, feedback_id: UUID) -> Dict[str, Any]:
        row = await self.repository.get_by_id(feedback_id)
        if not row:
            raise NotFoundError("Feedback not found")
        if row.user_id != context.user.id and not (
            context.is_community_admin and row.community_id == context.community_id
        ):
            raise PermissionDeniedError("Forbidden")

        await self.repository.delete(row.id)
        await self.audit.record(context.user.id, "delete", "feedback", feedback_id)
        return {"success": True, "message": "Feedback deleted successfully"}

    # Form templates

    async def get_form_template(self, context: CommunityContext) -> Dict[str, Any]:
        """The community's active form, or the built-in satisfaction form."""
        template = await self.templates.get_active(context.community_id)
        if template is None:
            return dict(DEFAULT_FORM_TEMPLATE)
        return serialize_template(template)

    async def save_form_template(self, context: CommunityContext, payload: FeedbackTemplateSave) -> Dict[str, Any]:
        values = {
            "title": payload.title or DEFAULT_FORM_TEMPLATE["title"],
            "subtitle": payload.subtitle or DEFAULT_FORM_TEMPLATE["subtitle"],
            "fields": payload.fields or [],
            "is_active": True,
        }

        if payload.id:
            template = await self.templates.get_by_id(payload.id)
            if not template or template.community_id != context.community_id:
                raise NotFoundError("Feedback form template not found")
            for field, value in values.items():
                setattr(template, field, value)
            await self.session.flush()
            action = "update_feedback_template"
        else:
            template = await self.templates.create(community_id=context.community_id, **values)
            action = "create_feedback_template"

        await self.audit.record(
            context.user.id, action, "feedback_form_templates", template.id, {"title": template.title}
        )
        return serialize_template(template)
