"""Outbound notification gateway used by the credential core.

Delivery is best effort: every method reports success as a bool and
never raises, so a provider outage cannot fail a registration or reset.
"""

import logging

from alive.services.email import EmailService
from alive.services.sms import SMSBackend, get_sms_backend

logger = logging.getLogger(__name__)


class NotificationGateway:
    """Sends email and SMS through the configured backends."""

    def __init__(
        self,
        email_service: EmailService | None = None,
        sms_backend: SMSBackend | None = None,
    ):
        self.email_service = email_service or EmailService()
        self._sms_backend = sms_backend

    @property
    def sms_backend(self) -> SMSBackend:
        """Lazy-load the backend."""
        if self._sms_backend is None:
            self._sms_backend = get_sms_backend()
        return self._sms_backend

    async def send_email(self, to: str, subject: str, html: str) -> bool:
        try:
            return await self.email_service.send_email(to=to, subject=subject, html=html)
        except Exception:
            logger.exception(f"Email dispatch to {to} failed")
            return False

    async def send_sms(self, phone_number: str, message: str) -> bool:
        try:
            return await self.sms_backend.send(phone_number, message)
        except Exception:
            logger.exception(f"SMS dispatch to {phone_number} failed")
            return False

    async def send_email_message(self, to: str, subject: str, message: str) -> bool:
        """Send a plain-text message in the notification email layout."""
        try:
            return await self.email_service.send_notification(to=to, subject=subject, message=message)
        except Exception:
            logger.exception(f"Email dispatch to {to} failed")
            return False

    async def send_message(
        self,
        email: str | None,
        subject: str,
        message: str,
        phone_number: str | None = None,
    ) -> bool:
        """Send the same message by email and, when a number is given, by SMS.

        Returns True only if every attempted channel succeeded.
        """
        results = []
        if phone_number:
            results.append(await self.send_sms(phone_number, message))
        if email:
            results.append(await self.send_email_message(email, subject, message))
        return all(results)


_gateway: NotificationGateway | None = None


def get_notification_gateway() -> NotificationGateway:
    """Get the process-wide gateway built from settings."""
    global _gateway
    if _gateway is None:
        _gateway = NotificationGateway()
    return _gateway
