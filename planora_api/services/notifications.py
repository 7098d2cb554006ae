"""Verification code delivery."""

import abc

import httpx

from planora_api.core.errors import DeliveryError
from planora_api.logging_config import get_logger

logger = get_logger(__name__)

HTTP_TIMEOUT_SECONDS = 10.0
VERIFICATION_SUBJECT = "Your Planora Verification Code"


class NotificationService(abc.ABC):
    """Delivers verification codes to signup requesters."""

    @abc.abstractmethod
    async def send_verification_code(self, email: str, code: str) -> None:
        """Send ``code`` to ``email``.

        Raises:
            DeliveryError: If the message could not be handed off.
        """


class ResendNotificationService(NotificationService):
    """Sends e-mail through the Resend HTTP API.

    A missing API key is a delivery failure, so callers are never told a
    code was sent when it was not.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str,
        sender: str,
        code_ttl_minutes: int = 15,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender
        self._code_ttl_minutes = code_ttl_minutes

    async def send_verification_code(self, email: str, code: str) -> None:
        if not self._api_key:
            logger.error("RESEND_API_KEY is not set; cannot send verification email")
            raise DeliveryError("Email service is not configured.")

        text = (
            f"Your Planora verification code is {code}. "
            f"It expires in {self._code_ttl_minutes} minutes. "
            "If you did not request this, ignore this email."
        )
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": [email],
                        "subject": VERIFICATION_SUBJECT,
                        "text": text,
                        "html": f"<p>Your verification code is <strong>{code}</strong>.</p>",
                    },
                )
        except httpx.HTTPError as e:
            logger.error("Verification email request failed", email=email, error=str(e))
            raise DeliveryError() from e

        if response.status_code >= 300:
            logger.error(
                "Verification email rejected",
                email=email,
                status_code=response.status_code,
                body=response.text,
            )
            raise DeliveryError(
                f"Failed to send verification email. Status: {response.status_code}"
            )

        logger.info("Verification email sent", email=email)
