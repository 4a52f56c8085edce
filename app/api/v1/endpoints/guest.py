"""Guest account endpoints."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Response

from app.api.v1.endpoints.users import get_user_service
from app.core.auth import require_role
from app.schemas.auth import CurrentUser
from app.services.user_service import UserService
from app.utils.responses import clear_session_cookie

router = APIRouter()

guest_only = require_role("Guest")


@router.delete("/delete-account", operation_id="delete_guest_account")
async def delete_guest_account(
    response: Response,
    current_user: Annotated[CurrentUser, Depends(guest_only)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Dict[str, Any]:
    message = await user_service.delete_guest(current_user.id)
    clear_session_cookie(response)
    return {"success": True, "message": message}


@router.post("/remind-admin", operation_id="remind_community_admin")
async def remind_admin(
    current_user: Annotated[CurrentUser, Depends(guest_only)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Dict[str, Any]:
    """Notify community admins that a guest is waiting; once per 24 hours."""
    return await user_service.remind_admins(current_user.id)
