"""Account signup, email verification and session endpoints."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_async_session as get_session
from app.core.rate_limit import rate_limit
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResendCodeRequest,
    SignupRequest,
    VerifyCodeRequest,
    VerifyEmailRequest,
)
from app.services.auth_service import AuthService
from app.utils.logging import get_logger
from app.utils.responses import clear_session_cookie, set_session_cookie

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_auth_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> AuthService:
    return AuthService(db_session)


@router.post(
    "/signup",
    summary="Start signup",
    description="Validate the signup form and email a verification code",
    operation_id="signup",
    dependencies=[Depends(rate_limit("signup"))],
)
async def signup(
    payload: SignupRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Dict[str, Any]:
    return await auth_service.signup(payload)


@router.post(
    "/verify-email",
    summary="Complete signup",
    description="Confirm the emailed code and create the account",
    operation_id="verify_email",
)
async def verify_email(
    payload: VerifyEmailRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Dict[str, Any]:
    return await auth_service.verify_email(payload)


@router.post("/verify-code", response_model=MessageResponse, operation_id="verify_code")
async def verify_code(
    payload: VerifyCodeRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Dict[str, Any]:
    """Check a code without creating an account."""
    return await auth_service.verify_code(payload.email, payload.code)


@router.post(
    "/resend-otp",
    response_model=MessageResponse,
    operation_id="resend_verification_code",
    dependencies=[Depends(rate_limit("resend-otp"))],
)
async def resend_code(
    payload: ResendCodeRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Dict[str, Any]:
    return await auth_service.resend_code(payload.email)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Sign in with email and password",
    operation_id="login",
)
async def login(
    payload: LoginRequest,
    response: Response,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """Issue a session token and set it as an HTTP-only cookie."""
    result = await auth_service.login(payload.email, payload.password)
    set_session_cookie(response, result.access_token)
    return result


@router.post("/signout", operation_id="signout")
async def signout(response: Response) -> Dict[str, str]:
    clear_session_cookie(response)
    return {"message": "Signed out successfully"}


@router.get("/session", response_model=CurrentUser, operation_id="get_session")
async def get_session_info(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    return current_user
