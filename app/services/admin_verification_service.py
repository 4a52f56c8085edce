"""Admin review of ID verification requests."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.database.models import Community, IdVerification, User
from app.repositories.audit_repository import AuditRepository
from app.repositories.community_repository import CommunityRepository
from app.repositories.user_repository import UserRepository
from app.repositories.verification_repository import IdVerificationRepository
from app.services.notification_service import NotificationService
from app.services.storage_service import StorageService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PENDING = ("pending",)
PROCESSED = ("approved", "rejected")
ACTIONS = ("approve", "reject", "delete", "delete_history", "clear_history")


def serialize_verification(row: IdVerification) -> Dict[str, Any]:
    submitted = row.submitted_at.isoformat() if row.submitted_at else None
    return {
        "id": str(row.id),
        "user_id": str(row.user_id),
        "full_name": row.full_name,
        "age": row.age,
        "gender": row.gender,
        "address": row.address,
        "id_number": row.id_number,
        "email": row.email,
        "status": row.status,
        "front_image_path": row.front_image_path,
        "back_image_path": row.back_image_path,
        "submitted_at": submitted,
        "created_at": submitted,
        "approved_at": row.approved_at.isoformat() if row.approved_at else None,
    }


class AdminVerificationService:
    """Lists, inspects and resolves verification requests."""

    def __init__(self, db_session: AsyncSession, storage: Optional[StorageService] = None):
        self.session = db_session
        self.repository = IdVerificationRepository(db_session)
        self.users = UserRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.audit = AuditRepository(db_session)
        self.notifications = NotificationService(db_session)
        self.storage = storage or StorageService()

    async def list_requests(self, history: bool = False) -> List[Dict[str, Any]]:
        rows = await self.repository.list_by_statuses(PROCESSED if history else PENDING)
        return [serialize_verification(row) for row in rows]

    async def _signed_url(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        try:
            return await self.storage.get_signed_url(
                settings.supabase.user_ids_bucket, path, expires_in=settings.supabase.signed_url_ttl
            )
        except Exception as e:
            LOGGER.warning(f"Could not sign {path}: {e}")
            return None

    async def get_request(self, request_id: UUID) -> Dict[str, Any]:
        row = await self.repository.get_by_id(request_id)
        if not row:
            raise NotFoundError("Verification request not found")

        data = serialize_verification(row)
        data["front_image_url"] = await self._signed_url(row.front_image_path)
        data["back_image_url"] = await self._signed_url(row.back_image_path)
        return data

    async def _ensure_admin_community(self, admin: User) -> Community:
        """The community the approving admin runs, created on first approval."""
        community = await self.communities.get_admin_community(admin.id)
        if community:
            return community

        code = await self.communities.next_admin_code()
        community = await self.communities.create(
            name=f"{admin.name or 'Admin'}'s Community",
            code=code,
            created_by=admin.id,
        )
        await self.communities.add_member(community.id, admin.id, "Admin")
        LOGGER.info(f"Created community {community.code} for admin {admin.id}")
        return community

    async def _approve(self, admin: User, row: IdVerification) -> str:
        row.status = "approved"
        row.approved_at = datetime.now(timezone.utc)

        community = await self._ensure_admin_community(admin)
        if not await self.communities.get_member(community.id, row.user_id):
            await self.communities.add_member(community.id, row.user_id, "Resident")

        await self.users.set_status(row.user_id, "approved")
        await self.notifications.notify(
            [row.user_id],
            "Verification Approved",
            f"Your ID verification has been approved. Welcome to {community.name}!",
            type="verification",
            link="/main/user",
        )
        return "Verification approved successfully"

    async def _reject(self, row: IdVerification) -> str:
        row.status = "rejected"
        await self.users.set_status(row.user_id, "rejected")
        await self.notifications.notify(
            [row.user_id],
            "Verification Rejected",
            "Your ID verification was rejected. Please contact your community administrator.",
            type="verification",
        )
        return "Verification rejected"

    async def perform_action(self, admin: User, action: str, request_id: Optional[UUID] = None) -> Dict[str, Any]:
        """Apply an admin action to a request (or to the whole history).

        Raises:
            ValidationError: Unknown action or missing/invalid target
            NotFoundError: The request does not exist
        """
        if action not in ACTIONS:
            raise ValidationError("Invalid action")

        if action == "clear_history":
            deleted = await self.repository.delete_by_statuses(PROCESSED)
            await self.audit.record(admin.id, "clear_history", "id_verifications", payload={"deleted": deleted})
            return {"success": True, "message": f"Cleared {deleted} processed requests", "deleted": deleted}

        if request_id is None:
            raise ValidationError("Request id is required")

        row = await self.repository.get_by_id(request_id)
        if not row:
            raise NotFoundError("Verification request not found")

        if action == "approve":
            message = await self._approve(admin, row)
        elif action == "reject":
            message = await self._reject(row)
        else:
            if action == "delete_history" and row.status not in PROCESSED:
                raise ValidationError("Only processed requests can be removed from history")
            await self.repository.delete(row.id)
            message = "Verification request deleted"

        await self.session.flush()
        await self.audit.record(admin.id, action, "id_verifications", row.id, {"user_id": str(row.user_id)})
        LOGGER.info(f"Admin {admin.id} applied '{action}' to verification {request_id}")
        return {"success": True, "message": message}
