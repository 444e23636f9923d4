import logging
from typing import Optional

import httpx

from bookshop.errors import ExternalServiceError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class Mailer:
    def __init__(
        self,
        api_key: Optional[str],
        sender: Optional[str],
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender)

    def send(self, to_email: str, subject: str, body: str) -> None:
        if not self.configured:
            logger.warning("Email service not configured. Skipping email send.")
            return

        with httpx.Client(transport=self._transport) as client:
            try:
                response = client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.sender,
                        "to": [to_email],
                        "subject": subject,
                        "text": body,
                    },
                    timeout=20,
                )
            except httpx.RequestError as exc:
                logger.error(f"Error while sending email: {exc}")
                raise ExternalServiceError("Email service communication error") from exc

        if response.status_code not in (200, 201):
            logger.error(f"Failed to send email via Resend: {response.text}")
            raise ExternalServiceError("Failed to send email.")
