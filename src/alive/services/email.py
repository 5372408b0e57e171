"""Email delivery for verification codes and account notices."""

import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape as html_escape

import aiosmtplib
import httpx

from alive.config import settings

logger = logging.getLogger(__name__)


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            text: Plain text alternative (optional)

        Returns:
            True if sent successfully. Backends report failure by returning
            False rather than raising.
        """
        pass


class ConsoleEmailBackend(EmailBackend):
    """Email backend that logs to console (for development)."""

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        logger.info(
            f"\n{'='*60}\n"
            f"EMAIL (console backend - not sent)\n"
            f"To: {to}\n"
            f"Subject: {subject}\n"
            f"{'-'*60}\n"
            f"{text or html}\n"
            f"{'='*60}\n"
        )
        return True


class SMTPEmailBackend(EmailBackend):
    """Email backend using SMTP.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    ``use_tls`` is set.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    def _build_message(self, to: str, subject: str, html: str, text: str | None) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        if text:
            message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))
        return message

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        implicit_tls = self.use_tls and self.port == 465
        try:
            await aiosmtplib.send(
                self._build_message(to, subject, html, text),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=implicit_tls,
                start_tls=self.use_tls and not implicit_tls,
            )
            logger.info(f"Email sent via SMTP to {to}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email via SMTP to {to}: {e}")
            return False


class ResendEmailBackend(EmailBackend):
    """Email backend using Resend API."""

    api_url = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str):
        self.api_key = api_key
        self.from_address = from_address

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        payload = {"from": self.from_address, "to": [to], "subject": subject, "html": html}
        if text:
            payload["text"] = text

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                    timeout=30.0,
                )
                response.raise_for_status()
                logger.info(f"Email sent via Resend to {to}")
                return True
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend API error: {e.response.status_code} - {e.response.text}")
                return False
            except Exception as e:
                logger.error(f"Failed to send email via Resend to {to}: {e}")
                return False


def get_email_backend() -> EmailBackend:
    """Get the configured email backend."""
    match settings.email_backend:
        case "console":
            return ConsoleEmailBackend()
        case "smtp":
            return SMTPEmailBackend(
                host=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                from_address=settings.email_from,
            )
        case "resend":
            return ResendEmailBackend(
                api_key=settings.resend_api_key,
                from_address=settings.email_from,
            )
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


def render_notification_html(message: str) -> str:
    """Wrap a plain-text message in the standard notification layout."""
    body = html_escape(message).replace("\n", "<br>")
    return f"""
<div style="font-family: Arial, sans-serif; padding: 20px; color: #333;">
    <h2 style="color: #2c3e50;">{html_escape(settings.app_name)} Notification</h2>
    <div style="padding: 20px; background-color: #f8f9fa; border-radius: 5px;">
        {body}
    </div>
    <p style="margin-top: 20px; font-size: 12px; color: #666;">
        This is an automated message, please do not reply to this email.
    </p>
</div>
"""


class EmailService:
    """High-level email service for sending application emails."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        """Lazy-load the backend."""
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_email(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        return await self.backend.send(to=to, subject=subject, html=html, text=text)

    async def send_notification(self, to: str, subject: str, message: str) -> bool:
        """Send a plain-text message using the notification layout.

        Args:
            to: Recipient email address
            subject: Email subject
            message: Plain text body; newlines become line breaks

        Returns:
            True if sent successfully
        """
        return await self.send_email(
            to=to,
            subject=subject,
            html=render_notification_html(message),
            text=message,
        )
