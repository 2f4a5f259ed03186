"""
Outgoing mail over SMTP.

smtplib is blocking, so sends run in a worker thread.
Without MAIL_HOST the message is logged and skipped (local development).
"""
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from lumina.config import get_settings
from lumina.utils.prometheus_metrics import record_external_request
from lumina.utils.templates import render_template
from lumina.utils.timeutil import utcnow

logger = logging.getLogger("lumina.mail")


class EmailDeliveryError(Exception):
    """SMTP delivery failed."""


def _expires_text(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


class EmailService:
    """Sends transactional email (password reset)."""

    def __init__(self):
        self.settings = get_settings()

    def _send_sync(self, to: str, subject: str, html: str, text: Optional[str]) -> None:
        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "Please view this message in an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP(
            self.settings.mail_host,
            self.settings.mail_port,
            timeout=self.settings.mail_timeout_seconds,
        ) as smtp:
            if self.settings.mail_use_tls:
                smtp.starttls()
            if self.settings.mail_user:
                smtp.login(self.settings.mail_user, self.settings.mail_password)
            smtp.send_message(message)

    async def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        """
        Send one message.

        Raises:
            EmailDeliveryError: SMTP connection or delivery failed
        """
        if not self.settings.mail_enabled:
            logger.info("Mail disabled, message not sent", extra={"event": "mail", "subject": subject})
            return

        try:
            async with record_external_request("smtp"):
                await asyncio.to_thread(self._send_sync, to, subject, html, text)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Mail send failed",
                extra={"event": "mail", "error_type": type(e).__name__, "subject": subject},
            )
            raise EmailDeliveryError("Failed to send email") from e

        logger.info("Mail sent", extra={"event": "mail", "subject": subject})

    async def send_password_reset_email(self, to: str, business_name: str, reset_token: str) -> None:
        reset_url = f"{self.settings.app_url.rstrip('/')}/reset-password?token={reset_token}"
        expires_text = _expires_text(self.settings.reset_token_expire_minutes)
        html = render_template(
            "password_reset.html",
            app_name="Lumina",
            business_name=business_name,
            reset_url=reset_url,
            expires_text=expires_text,
            year=utcnow().year,
        )
        text = (
            f"Reset your password: {reset_url}\n"
            f"This link will expire in {expires_text}. "
            "If you didn't request this, you can safely ignore this email."
        )
        await self.send_email(to, "Reset Your Lumina Password", html, text)


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
