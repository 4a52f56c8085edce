"""User service for account, status and ID verification operations.

This module provides user management business logic,
acting as an intermediary between repositories and API endpoints.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
    ValidationError,
)
from app.repositories.announcement_repository import AnnouncementRepository
from app.repositories.community_repository import CommunityRepository
from app.repositories.complaint_repository import ComplaintRepository
from app.repositories.feedback_repository import FeedbackRepository
from app.repositories.notification_repository import NotificationRepository
from app.repositories.poll_repository import PollRepository
from app.repositories.user_repository import UserRepository
from app.repositories.verification_repository import IdVerificationRepository
from app.schemas.common import FilePayload
from app.schemas.user import IdVerificationForm
from app.services.notification_service import NotificationService
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

STORED_STATUSES = ("approved", "unverified", "rejected")
REMINDER_INTERVAL = timedelta(hours=24)


class UserService:
    """Service for user business logic operations."""

    def __init__(self, db_session: AsyncSession, storage: Optional[StorageService] = None):
        """Initialize service with database session.

        Args:
            db_session: SQLAlchemy async session
            storage: Storage client for ID images
        """
        self.session = db_session
        self.repository = UserRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.verifications = IdVerificationRepository(db_session)
        self.notifications = NotificationService(db_session)
        self.storage = storage or StorageService()
        self.bucket = settings.supabase.user_ids_bucket

    async def get_profile(self, user_id: UUID) -> Dict[str, Any]:
        """Profile of the caller with their community membership."""
        user = await self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        membership = await self.communities.get_membership(user_id)
        community = await self.communities.get_by_id(membership.community_id) if membership else None

        return {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "image": user.image,
            "role": membership.role if membership else user.role,
            "status": user.status,
            "email_verified": user.email_verified.isoformat() if user.email_verified else None,
            "created_at": user.created_at.isoformat() if user.created_at else None,
            "community": (
                {
                    "id": str(community.id),
                    "name": community.name,
                    "code": community.code,
                    "role": membership.role,
                    "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
                }
                if community
                else None
            ),
        }

    async def get_status(self, user_id: UUID) -> str:
        """Verification status as the client should see it.

        A missing row reads as ``deleted``; ``pending`` defers to the latest
        ID verification record.
        """
        user = await self.repository.get_by_id(user_id)
        if not user:
            return "deleted"

        if user.status in STORED_STATUSES:
            return user.status

        if user.status == "pending":
            latest = await self.verifications.get_latest_for_user(user_id)
            return latest.status if latest else "pending"

        return "unverified"

    async def _remove_id_images(self, user_id: UUID) -> None:
        try:
            paths = await self.storage.list_files(self.bucket, str(user_id))
            if paths:
                await self.storage.remove_files(self.bucket, paths)
        except Exception as e:
            LOGGER.warning(f"Failed to remove ID images for user {user_id}: {e}")

    async def delete_account(self, user_id: UUID) -> str:
        """Remove the user with their verifications, ID images and memberships."""
        user = await self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        deleted = await self.verifications.delete_where(user_id=user_id)
        LOGGER.info(f"Deleted {deleted} verification records for user {user_id}")

        await self._remove_id_images(user_id)

        await self.communities.remove_memberships(user_id)
        await self.repository.delete(user_id)
        LOGGER.info(f"Deleted account {user_id}")
        return "Account and verification deleted successfully. Please sign up again."

    async def delete_guest(self, user_id: UUID) -> str:
        """Remove a guest account; a failed membership cleanup does not block it."""
        try:
            async with self.session.begin_nested():
                await self.communities.remove_memberships(user_id)
        except Exception as e:
            LOGGER.error(f"Failed to remove memberships for guest {user_id}: {e}", exc_info=True)

        if not await self.repository.delete(user_id):
            raise NotFoundError("User not found")
        LOGGER.info(f"Deleted guest account {user_id}")
        return "Guest account deleted successfully"

    async def community_member_count(self, user_id: UUID) -> int:
        membership = await self.communities.get_membership(user_id)
        if not membership:
            raise NotFoundError("User not in a community")
        return await self.communities.count_members(membership.community_id)

    async def dashboard(self, user_id: UUID, community_id: UUID) -> Dict[str, Any]:
        """Counters and recent announcements for the resident dashboard."""
        now = datetime.now(timezone.utc)
        announcements, _ = await AnnouncementRepository(self.session).paginate(community_id, page=1, limit=3)

        return {
            "activePolls": await PollRepository(self.session).count_active(community_id, now),
            "myComplaints": await ComplaintRepository(self.session).count(
                {"community_id": community_id, "user_id": user_id}
            ),
            "myFeedback": await FeedbackRepository(self.session).count(
                {"community_id": community_id, "user_id": user_id}
            ),
            "unreadNotifications": await NotificationRepository(self.session).count_unread(user_id),
            "recentAnnouncements": [
                {
                    "id": str(a.id),
                    "title": a.title,
                    "body": a.body,
                    "image_url": a.image_url,
                    "created_at": a.created_at.isoformat() if a.created_at else None,
                }
                for a in announcements
            ],
        }

    async def submit_id_verification(
        self,
        user_id: UUID,
        form: IdVerificationForm,
        front: FilePayload,
        back: FilePayload,
    ) -> str:
        """Store both ID images and queue the submission for admin review.

        Returns:
            str: ID of the verification record

        Raises:
            NotFoundError: Unknown user
            ValidationError: A submission already went through
        """
        user = await self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        existing = await self.verifications.get_latest_for_user(user_id)
        if (existing and existing.status not in ("pending", "rejected")) or user.status != "unverified":
            raise ValidationError("ID verification can only be submitted once.")

        stamp = int(time.time() * 1000)
        front_path = f"{user_id}/front-{stamp}.{front.extension}"
        back_path = f"{user_id}/back-{stamp}.{back.extension}"

        await self.storage.upload_file(front.content, self.bucket, front_path, front.content_type or "image/jpeg")
        try:
            await self.storage.upload_file(back.content, self.bucket, back_path, back.content_type or "image/jpeg")
        except Exception:
            await self.storage.remove_files(self.bucket, [front_path])
            raise

        fields = dict(
            full_name=form.full_name.strip(),
            age=form.age,
            gender=form.gender,
            address=form.address.strip(),
            id_number=form.id_number.strip(),
            email=form.email.lower(),
            front_image_path=front_path,
            back_image_path=back_path,
            status="pending",
            submitted_at=datetime.now(timezone.utc),
            approved_at=None,
        )
        try:
            async with self.session.begin_nested():
                if existing:
                    verification = await self.verifications.update(existing.id, **fields)
                else:
                    verification = await self.verifications.create(user_id=user_id, **fields)
                await self.repository.set_status(user_id, "pending")
        except Exception:
            LOGGER.error(f"Failed to save ID verification for user {user_id}", exc_info=True)
            await self.storage.remove_files(self.bucket, [front_path, back_path])
            raise

        admins = await self.repository.list_by_role("Admin")
        await self.notifications.notify(
            [admin.id for admin in admins],
            "New ID Verification Request",
            f"{form.full_name} has submitted an ID verification request.",
            type="verification",
            link=f"/main/admin/requests/{verification.id}",
        )

        LOGGER.info(f"ID verification {verification.id} submitted for user {user_id}")
        return str(verification.id)

    async def remind_admins(self, user_id: UUID) -> Dict[str, Any]:
        """Let a guest nudge their community admins, at most once a day."""
        user = await self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        membership = await self.communities.get_membership(user_id)
        if not membership:
            raise PermissionDeniedError("User not in a community")

        now = datetime.now(timezone.utc)
        if user.last_reminder_at and now - user.last_reminder_at < REMINDER_INTERVAL:
            retry_after = int((user.last_reminder_at + REMINDER_INTERVAL - now).total_seconds())
            raise RateLimitExceededError("You can only send one reminder every 24 hours.", retry_after=retry_after)

        admin_ids = await self.communities.member_user_ids(membership.community_id, roles=["Admin"])
        sent = await self.notifications.notify(
            admin_ids,
            "Guest Reminder",
            f"{user.name or user.email} is waiting for their account to be reviewed.",
            type="reminder",
            link="/main/admin/members",
        )
        await self.repository.set_last_reminder(user_id, now)
        return {"success": True, "message": "Reminder sent to community admins", "notified": sent}
