"""Admin review of ID verification requests."""

from typing import Annotated, Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_global_admin
from app.core.database import get_async_session as get_session
from app.database.models import User
from app.schemas.admin import VerificationActionRequest
from app.services.admin_verification_service import AdminVerificationService

router = APIRouter()


async def get_admin_verification_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AdminVerificationService:
    return AdminVerificationService(db_session)


@router.get(
    "",
    summary="List verification requests",
    description="Pending requests, or processed ones with history=true; newest first",
    operation_id="list_verification_requests",
)
async def list_requests(
    admin: Annotated[User, Depends(require_global_admin)],
    service: Annotated[AdminVerificationService, Depends(get_admin_verification_service)],
    history: bool = Query(False),
) -> List[Dict[str, Any]]:
    return await service.list_requests(history=history)


@router.get("/history", operation_id="list_verification_history")
async def list_history(
    admin: Annotated[User, Depends(require_global_admin)],
    service: Annotated[AdminVerificationService, Depends(get_admin_verification_service)],
) -> List[Dict[str, Any]]:
    return await service.list_requests(history=True)


@router.get("/{request_id}", operation_id="get_verification_request")
async def get_request(
    request_id: UUID,
    admin: Annotated[User, Depends(require_global_admin)],
    service: Annotated[AdminVerificationService, Depends(get_admin_verification_service)],
) -> Dict[str, Any]:
    """Request detail with short-lived signed links to both ID images."""
    return await service.get_request(request_id)


@router.post(
    "",
    summary="Act on a verification request",
    description="approve, reject, delete, delete_history or clear_history",
    operation_id="act_on_verification_request",
)
async def perform_action(
    payload: VerificationActionRequest,
    admin: Annotated[User, Depends(require_global_admin)],
    service: Annotated[AdminVerificationService, Depends(get_admin_verification_service)],
) -> Dict[str, Any]:
    return await service.perform_action(admin, payload.action, payload.id)
