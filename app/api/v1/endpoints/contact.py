"""Public contact form."""

from typing import Annotated, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from app.core.rate_limit import rate_limit
from app.services.email_service import EmailService

router = APIRouter()


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    subject: str = Field(..., min_length=5)
    message: str = Field(..., min_length=10)


def get_email_service() -> EmailService:
    return EmailService()


@router.post(
    "",
    summary="Send a contact message",
    description="Emails the site operators and sends the sender a confirmation",
    operation_id="send_contact_message",
    dependencies=[Depends(rate_limit("contact"))],
)
async def send_contact_message(
    payload: ContactRequest,
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> Dict[str, str]:
    await email_service.send_contact_message(payload.name, payload.email, payload.subject, payload.message)
    await email_service.send_contact_confirmation(payload.name, payload.email, payload.subject)
    return {"message": "Message sent successfully! We'll get back to you within 2 hours."}
