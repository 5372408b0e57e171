"""SMS delivery through a bulk SMS gateway."""

import logging
from abc import ABC, abstractmethod

import httpx

from alive.config import settings
from alive.services.resilience import CircuitBreaker, sms_circuit, with_retry

logger = logging.getLogger(__name__)


class SMSBackend(ABC):
    """Abstract base class for SMS backends."""

    @abstractmethod
    async def send(self, phone_number: str, message: str) -> bool:
        """Send a text message. Returns True if the gateway accepted it."""
        pass


class ConsoleSMSBackend(SMSBackend):
    """SMS backend that logs to console (for development)."""

    async def send(self, phone_number: str, message: str) -> bool:
        logger.info(
            f"\n{'='*60}\n"
            f"SMS (console backend - not sent)\n"
            f"To: {phone_number}\n"
            f"{'-'*60}\n"
            f"{message}\n"
            f"{'='*60}\n"
        )
        return True


class HTTPSMSBackend(SMSBackend):
    """Bulk SMS gateway that accepts a JSON POST per message.

    Transport errors are retried with backoff; repeated failures open the
    circuit so later sends fail fast instead of stalling requests.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        partner_id: str,
        shortcode: str,
        timeout: float = 15.0,
        circuit: CircuitBreaker | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.partner_id = partner_id
        self.shortcode = shortcode
        self.timeout = timeout
        self.circuit = circuit or sms_circuit

    def _payload(self, phone_number: str, message: str) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "partnerID": self.partner_id,
            "message": message,
            "shortcode": self.shortcode,
            "mobile": phone_number,
        }

    async def _post(self, payload: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.api_url, json=payload)
            response.raise_for_status()
            return response

    async def send(self, phone_number: str, message: str) -> bool:
        try:
            await self.circuit.call(with_retry, self._post, self._payload(phone_number, message))
            logger.info(f"SMS sent successfully to {phone_number}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                f"SMS gateway error for {phone_number}: {e.response.status_code} - {e.response.text}"
            )
            return False
        except Exception as e:
            logger.error(f"Error sending SMS to {phone_number}: {e}")
            return False


def get_sms_backend() -> SMSBackend:
    """Get the configured SMS backend."""
    if settings.sms_backend == "console":
        return ConsoleSMSBackend()
    elif settings.sms_backend == "http":
        return HTTPSMSBackend(
            api_url=settings.sms_api_url,
            api_key=settings.sms_api_key,
            partner_id=settings.sms_partner_id,
            shortcode=settings.sms_shortcode,
            timeout=settings.sms_timeout,
        )
    else:
        raise ValueError(f"Unknown SMS backend: {settings.sms_backend}")
