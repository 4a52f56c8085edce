"""Email verification codes: issue, throttle and confirm."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import RateLimitExceededError, ValidationError
from app.core.security import generate_verification_code
from app.repositories.verification_repository import EmailVerificationRepository
from app.services.email_service import EmailService
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EmailVerificationService:
    """Issues six digit codes and checks them.

    A code lives for ``code_ttl_minutes``. New codes are refused within
    ``resend_cooldown_seconds`` of the previous send and once
    ``max_sends_per_hour`` codes went out during the current hour.
    """

    def __init__(self, db_session: AsyncSession, email_service: Optional[EmailService] = None):
        self.repository = EmailVerificationRepository(db_session)
        self.email_service = email_service or EmailService()
        self.ttl = timedelta(minutes=settings.email.code_ttl_minutes)
        self.cooldown = timedelta(seconds=settings.email.resend_cooldown_seconds)
        self.max_sends = settings.email.max_sends_per_hour

    async def send_code(self, email: str, now: Optional[datetime] = None) -> str:
        """Create or rotate the code for an address and email it.

        Raises:
            RateLimitExceededError: When the cooldown or hourly cap applies
        """
        now = now or datetime.now(timezone.utc)
        email = email.strip().lower()
        code = generate_verification_code()
        record = await self.repository.get_by_email(email)

        if record is None:
            await self.repository.create(
                email=email,
                code=code,
                expires_at=now + self.ttl,
                send_count=1,
                window_started_at=now,
                last_sent_at=now,
            )
        else:
            elapsed = now - record.last_sent_at
            if elapsed < self.cooldown:
                wait = int((self.cooldown - elapsed).total_seconds()) + 1
                raise RateLimitExceededError(
                    f"Please wait {wait} seconds before requesting a new code.", retry_after=wait
                )

            if now - record.window_started_at >= timedelta(hours=1):
                record.window_started_at = now
                record.send_count = 0

            if record.send_count >= self.max_sends:
                retry_after = int((record.window_started_at + timedelta(hours=1) - now).total_seconds())
                raise RateLimitExceededError(
                    "Too many verification codes requested. Please try again later.",
                    retry_after=max(retry_after, 1),
                )

            record.code = code
            record.expires_at = now + self.ttl
            record.send_count += 1
            record.last_sent_at = now
            await self.repository.session.flush()

        await self.email_service.send_verification_code(email, code)
        LOGGER.info(f"Verification code sent to {email}")
        return code

    async def verify_code(self, email: str, code: str, now: Optional[datetime] = None) -> bool:
        """Check a submitted code; the record is consumed on success.

        Raises:
            ValidationError: When no code is pending, it expired, or it does not match
        """
        now = now or datetime.now(timezone.utc)
        email = email.strip().lower()
        record = await self.repository.get_by_email(email)

        if record is None:
            raise ValidationError("No verification code found. Please request a new one.")

        if record.expires_at <= now:
            raise ValidationError("Verification code has expired. Please request a new one.")

        if record.code != code.strip():
            raise ValidationError("Invalid verification code")

        await self.repository.delete_by_email(email)
        return True
