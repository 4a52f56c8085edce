"""Transactional email delivery through the Resend HTTP API."""

from datetime import datetime, timezone
from html import escape
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import APIClientError, ConfigurationError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EmailService:
    """Sends verification and notification emails."""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.email.resend_api_key
        self.sender = sender or settings.email.sender
        self.api_url = settings.email.resend_api_url

    async def send(
        self, to: str, subject: str, html: str, text: Optional[str] = None, reply_to: Optional[str] = None
    ) -> str:
        """Send one email and return the provider message id.

        Raises:
            ConfigurationError: If no API key is configured.
            APIClientError: If the provider rejects the message.
        """
        if not self.api_key:
            raise ConfigurationError("Email service not configured")

        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        if text:
            payload["text"] = text
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Email delivery failed for {to}: {str(e)}", exc_info=True)
            raise APIClientError(f"Failed to send email: {str(e)}", original_error=e) from e

        if response.status_code >= 400:
            LOGGER.error(
                f"Resend rejected email: {response.text}",
                extra={"to": to, "status_code": response.status_code},
            )
            raise APIClientError(f"Failed to send email: {response.text}")

        message_id = response.json().get("id", "")
        LOGGER.info(f"Email sent to {to} (id={message_id})")
        return message_id

    async def send_verification_code(self, to: str, code: str) -> str:
        minutes = settings.email.code_ttl_minutes
        html = (
            "<div style=\"font-family: sans-serif\">"
            "<h2>Verify your E-Community account</h2>"
            f"<p>Your verification code is:</p><p style=\"font-size: 28px; letter-spacing: 6px\"><b>{code}</b></p>"
            f"<p>This code expires in {minutes} minutes. If you did not request it, ignore this email.</p>"
            "</div>"
        )
        text = f"Your E-Community verification code is {code}. It expires in {minutes} minutes."
        return await self.send(to, f"Your E-Community verification code: {code}", html, text)

    async def send_contact_message(self, name: str, email: str, subject: str, message: str) -> str:
        """Forward a contact form submission to the site operators.

        Raises:
            ConfigurationError: If no contact address is configured.
        """
        recipient = settings.email.contact_email
        if not recipient:
            raise ConfigurationError("Contact email not configured")

        sent_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        html = (
            "<div style=\"font-family: sans-serif\">"
            "<h2>New Contact Form Submission</h2>"
            f"<p><b>Name:</b> {escape(name)}<br><b>Email:</b> {escape(email)}<br><b>Subject:</b> {escape(subject)}</p>"
            f"<p style=\"white-space: pre-wrap\">{escape(message)}</p>"
            f"<p style=\"color: #9ca3af; font-size: 12px\">Sent via E-Community Contact Form, {sent_at}</p>"
            "</div>"
        )
        return await self.send(recipient, f"[E-Community] {subject}", html, text=message, reply_to=email)

    async def send_contact_confirmation(self, name: str, email: str, subject: str) -> str:
        html = (
            "<div style=\"font-family: sans-serif\">"
            "<h2>We've received your message</h2>"
            f"<p>Hi {escape(name)},</p>"
            f"<p>Thank you for reaching out to E-Community! We've received your message about "
            f"\"{escape(subject)}\" and our team will review it promptly.</p>"
            "<p>We typically respond within 2 hours during business hours and within 24 hours on weekends.</p>"
            f"<p><a href=\"{settings.email.site_url}\">Visit E-Community</a></p>"
            "</div>"
        )
        return await self.send(email, "Thank you for contacting E-Community", html)
