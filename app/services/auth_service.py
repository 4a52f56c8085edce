"""Signup, email confirmation and credential login."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from app.core.jwt import session_tokens
from app.core.security import hash_password, verify_password
from app.database.models import Community, User
from app.repositories.community_repository import CommunityRepository
from app.repositories.user_repository import UserRepository
from app.schemas.auth import LoginResponse, SignupRequest, UserSummary, VerifyEmailRequest
from app.services.email_verification_service import EmailVerificationService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AuthService:
    """Service for account creation and sign-in."""

    def __init__(
        self,
        db_session: AsyncSession,
        verification_service: Optional[EmailVerificationService] = None,
    ):
        """Initialize service with database session.

        Args:
            db_session: SQLAlchemy async session
            verification_service: Email code issuer, built from the session by default
        """
        self.session = db_session
        self.users = UserRepository(db_session)
        self.communities = CommunityRepository(db_session)
        self.verification = verification_service or EmailVerificationService(db_session)

    async def _resolve_community(self, code: Optional[str], role: str) -> Optional[Community]:
        if not code or not code.strip():
            if role == "Resident":
                raise ValidationError("Community code is required for residents")
            return None

        community = await self.communities.get_by_code(code)
        if not community:
            raise ValidationError("Invalid community code")
        return community

    async def signup(self, payload: SignupRequest) -> Dict[str, Any]:
        """Validate a signup form and email a verification code.

        The account itself is created by :meth:`verify_email`.
        """
        if await self.users.get_by_email(payload.email):
            raise ValidationError("User with this email already exists")

        if payload.communityCode and payload.communityCode.strip():
            await self._resolve_community(payload.communityCode, payload.role)

        await self.verification.send_code(payload.email)
        return {
            "success": True,
            "message": "Verification code sent to your email",
            "email": payload.email.lower(),
        }

    async def verify_email(self, payload: VerifyEmailRequest) -> Dict[str, Any]:
        """Confirm the code, then create the user and their membership."""
        await self.verification.verify_code(payload.email, payload.code)

        if await self.users.get_by_email(payload.email):
            raise ValidationError("User with this email already exists")

        community = await self._resolve_community(payload.communityCode, payload.role)

        user = await self.users.create(
            name=payload.fullName.strip(),
            email=payload.email.lower(),
            hashed_password=hash_password(payload.password),
            role=payload.role,
            status="unverified",
            email_verified=datetime.now(timezone.utc),
        )

        if community:
            try:
                async with self.session.begin_nested():
                    await self.communities.add_member(community.id, user.id, payload.role)
            except Exception as e:
                # The account stays usable; an admin can add the membership later
                LOGGER.error(f"Failed to add user {user.id} to community {community.id}: {e}", exc_info=True)

        LOGGER.info(f"Created user {user.id} with role {payload.role}")
        return {
            "success": True,
            "message": "Email verified and account created successfully",
            "user": {"id": str(user.id), "email": user.email, "name": user.name, "role": user.role},
        }

    async def verify_code(self, email: str, code: str) -> Dict[str, Any]:
        await self.verification.verify_code(email, code)
        return {"success": True, "message": "Email verified successfully"}

    async def resend_code(self, email: str) -> Dict[str, Any]:
        await self.verification.send_code(email)
        return {"success": True, "message": "Verification code resent successfully"}

    async def resolve_role(self, user: User) -> Tuple[str, Optional[Community]]:
        """Membership role first, then the account role, then Guest."""
        membership = await self.communities.get_membership(user.id)
        if membership:
            return membership.role, await self.communities.get_by_id(membership.community_id)
        return user.role or "Guest", None

    async def login(self, email: str, password: str) -> LoginResponse:
        """Check credentials and issue a session token.

        Raises:
            AuthenticationError: Unknown email, OAuth-only account, or wrong password
            PermissionDeniedError: Email not yet verified
        """
        user = await self.users.get_by_email(email)
        if not user:
            raise AuthenticationError("No user found with this email")

        if not user.hashed_password:
            raise AuthenticationError("Please sign in with your OAuth provider")

        if not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid password")

        if not user.email_verified:
            raise PermissionDeniedError("Please verify your email before signing in")

        role, community = await self.resolve_role(user)
        token = session_tokens.issue_token(str(user.id), user.email, role, name=user.name)
        LOGGER.info(f"User {user.id} signed in as {role}")

        return LoginResponse(
            access_token=token,
            expires_in=settings.auth.session_max_age,
            user=UserSummary(
                id=user.id,
                email=user.email,
                name=user.name,
                role=role,
                status=user.status,
                community_id=community.id if community else None,
            ),
        )
