"""Authentication and authorization dependencies for FastAPI routes.

Every protected route resolves the session, then (where needed) the caller's
community membership and role, through the dependencies below instead of
repeating the checks inline.
"""

from dataclasses import dataclass
from typing import Annotated, Optional
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session
from app.core.exceptions import AuthenticationError, PermissionDeniedError
from app.core.jwt import session_tokens
from app.database.models import User
from app.repositories.community_repository import CommunityRepository
from app.repositories.user_repository import UserRepository
from app.schemas.auth import CurrentUser
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

ADMIN_ROLE = "Admin"

# HTTP Bearer token scheme; the session cookie is accepted as a fallback
security = HTTPBearer(auto_error=False)


@dataclass
class CommunityContext:
    """The caller together with their community membership."""

    user: CurrentUser
    account_role: str
    community_id: UUID
    member_role: str

    @property
    def is_community_admin(self) -> bool:
        return self.member_role == ADMIN_ROLE

    @property
    def is_admin(self) -> bool:
        """Admin either of this community or globally."""
        return (self.member_role or "").lower() == "admin" or (self.account_role or "").lower() == "admin"


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth.cookie_name)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Get the current authenticated user from the session token.

    Raises:
        AuthenticationError: If the token is missing, invalid, or expired
    """
    token = _session_token(request, credentials)
    if not token:
        LOGGER.debug(f"No session for {request.url.path}")
        raise AuthenticationError("Unauthorized")

    try:
        claims = await session_tokens.verify_token(token)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid session token: {e}")
        raise AuthenticationError("Unauthorized") from e

    return CurrentUser(id=UUID(claims.sub), email=claims.email, name=claims.name, role=claims.role)


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[CurrentUser]:
    """Get the current user if authenticated, None otherwise."""
    try:
        return await get_current_user(request, credentials)
    except AuthenticationError:
        return None


async def get_current_account(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """Load the caller's user row.

    Raises:
        AuthenticationError: If the account no longer exists
    """
    account = await UserRepository(session).get_by_id(current_user.id)
    if not account:
        raise AuthenticationError("User not found")
    return account


async def require_global_admin(
    account: Annotated[User, Depends(get_current_account)],
) -> User:
    """Require ``users.role == "Admin"``."""
    if account.role != ADMIN_ROLE:
        LOGGER.warning(f"Access denied for user {account.id}: role '{account.role}'")
        raise PermissionDeniedError("Forbidden")
    return account


async def get_optional_community_context(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> Optional[CommunityContext]:
    """The caller's community context, or None when they have no membership."""
    account = await UserRepository(session).get_by_id(current_user.id)
    if not account:
        raise AuthenticationError("User not found")

    membership = await CommunityRepository(session).get_membership(current_user.id)
    if not membership:
        return None

    return CommunityContext(
        user=current_user,
        account_role=account.role,
        community_id=membership.community_id,
        member_role=membership.role,
    )


async def get_community_context(
    context: Annotated[Optional[CommunityContext], Depends(get_optional_community_context)],
) -> CommunityContext:
    """Require a community membership.

    Raises:
        PermissionDeniedError: If the caller does not belong to a community
    """
    if context is None:
        raise PermissionDeniedError("User not in a community")
    return context


async def require_community_admin(
    context: Annotated[CommunityContext, Depends(get_community_context)],
) -> CommunityContext:
    """Require the Admin role in the caller's community."""
    if not context.is_community_admin:
        LOGGER.warning(f"Access denied for user {context.user.id}: community role '{context.member_role}'")
        raise PermissionDeniedError("Admin access required")
    return context


async def require_admin(
    context: Annotated[CommunityContext, Depends(get_community_context)],
) -> CommunityContext:
    """Require a community Admin or a global Admin."""
    if not context.is_admin:
        raise PermissionDeniedError("Admin access required")
    return context


def require_role(*required_roles: str):
    """Create a dependency that requires one of the given session roles.

    Example:
        guest_only = require_role("Guest")

        @router.delete("/delete-account")
        async def delete_guest(user: CurrentUser = Depends(guest_only)): ...
    """

    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in required_roles:
            LOGGER.warning(f"Access denied for user {user.id}: role '{user.role}' not in {required_roles}")
            raise AuthenticationError("Unauthorized")
        return user

    return role_checker
