"""Signed-in user endpoints: profile, status, dashboard and ID verification."""

from typing import Annotated, Any, Dict

import pydantic
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CommunityContext, get_community_context, get_current_user
from app.core.database import get_async_session as get_session
from app.core.exceptions import ValidationError
from app.schemas.auth import CurrentUser
from app.schemas.common import FilePayload
from app.schemas.user import CommunityCountResponse, IdVerificationForm, IdVerificationResponse, StatusResponse
from app.services.user_service import UserService
from app.utils.logging import get_logger
from app.utils.responses import clear_session_cookie, format_validation_errors

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_user_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> UserService:
    return UserService(db_session)


async def read_upload(upload: UploadFile) -> FilePayload:
    return FilePayload(
        content=await upload.read(),
        filename=upload.filename or "file",
        content_type=upload.content_type,
    )


@router.get("", summary="Current user profile", operation_id="get_user_profile")
async def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Dict[str, Any]:
    return await user_service.get_profile(current_user.id)


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Verification status",
    description="Reports 'deleted' when the account no longer exists",
    operation_id="get_user_status",
)
async def get_status(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> StatusResponse:
    return StatusResponse(status=await user_service.get_status(current_user.id))


@router.delete("/delete-account", operation_id="delete_user_account")
async def delete_account(
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Dict[str, Any]:
    """Delete the account with its verification data and sign the caller out."""
    message = await user_service.delete_account(current_user.id)
    clear_session_cookie(response)
    return {"success": True, "message": message}


@router.get("/community", response_model=CommunityCountResponse, operation_id="get_user_community_size")
async def get_community(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> CommunityCountResponse:
    return CommunityCountResponse(members=await user_service.community_member_count(current_user.id))


@router.get("/dashboard", operation_id="get_user_dashboard")
async def get_dashboard(
    context: Annotated[CommunityContext, Depends(get_community_context)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Dict[str, Any]:
    return await user_service.dashboard(context.user.id, context.community_id)


@router.post(
    "/id-verification",
    response_model=IdVerificationResponse,
    summary="Submit ID verification",
    description="Multipart form with identity details and both sides of a national ID",
    operation_id="submit_id_verification",
)
async def submit_id_verification(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    full_name: Annotated[str, Form()],
    age: Annotated[str, Form()],
    gender: Annotated[str, Form()],
    address: Annotated[str, Form()],
    id_number: Annotated[str, Form()],
    email: Annotated[str, Form()],
    national_id_front: Annotated[UploadFile, File()],
    national_id_back: Annotated[UploadFile, File()],
) -> IdVerificationResponse:
    try:
        form = IdVerificationForm(
            full_name=full_name,
            age=age,
            gender=gender.lower(),
            address=address,
            id_number=id_number,
            email=email,
        )
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid form data", details=format_validation_errors(e.errors())) from e

    verification_id = await user_service.submit_id_verification(
        current_user.id,
        form,
        await read_upload(national_id_front),
        await read_upload(national_id_back),
    )
    return IdVerificationResponse(
        message="ID verification submitted successfully",
        verification_id=verification_id,
    )
