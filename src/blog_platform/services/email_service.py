"""
# Email Service

Outbound mail over SMTP through `fastapi-mail`. Messages carry an HTML body with a plain-text
alternative. Each send is bounded by `settings.EXTERNAL_CALL_TIMEOUT`.
"""

import asyncio
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.errors import ConnectionErrors

from blog_platform.config import settings
from blog_platform.errors import UpstreamError, UpstreamTimeoutError
from blog_platform.managers.logging_manager import get_logger

logger = get_logger(prefix="[EmailService]")


def build_connection_config(timeout: float) -> ConnectionConfig:
    """SMTP connection settings for `FastMail`, taken from the application settings."""
    password = settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else ""
    return ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USERNAME or "",
        MAIL_PASSWORD=password,
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_STARTTLS=settings.SMTP_USE_TLS,
        MAIL_SSL_TLS=settings.SMTP_USE_SSL,
        USE_CREDENTIALS=bool(settings.SMTP_USERNAME and password),
        TIMEOUT=max(1, int(timeout)),
    )


class EmailService:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT
        self._mailer: Optional[FastMail] = None

    def _get_mailer(self) -> FastMail:
        if self._mailer is None:
            self._mailer = FastMail(build_connection_config(self.timeout))
        return self._mailer

    async def send_email(self, to_address: str, subject: str, html_body: str, text_body: str) -> None:
        """
        Send an HTML email with a plain-text alternative.

        Raises:
            UpstreamTimeoutError: If the mail server does not answer in time.
            UpstreamError: If the mail server refuses the message or cannot be reached.
        """
        message = MessageSchema(
            subject=subject,
            recipients=[to_address],
            body=html_body,
            alternative_body=text_body,
            subtype=MessageType.html,
        )
        try:
            await asyncio.wait_for(self._get_mailer().send_message(message), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Sending '%s' timed out after %ss", subject, self.timeout)
            raise UpstreamTimeoutError("Mail server timed out, please retry")
        except ConnectionErrors as e:
            logger.error("Failed to send '%s': %s", subject, e, exc_info=True)
            raise UpstreamError("Failed to send email")
        logger.info("Sent '%s'", subject)

    async def send_verification_email(self, to_address: str, verification_link: str) -> None:
        html_body = (
            "<p>Thanks for subscribing!</p>"
            f'<p>Please confirm your email address by clicking <a href="{verification_link}">this link</a>.</p>'
        )
        text_body = f"Thanks for subscribing! Confirm your email address: {verification_link}"
        await self.send_email(to_address, "Verify your subscription", html_body, text_body)


email_service = EmailService()
