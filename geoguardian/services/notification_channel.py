"""
Delivery channels for rendered notifications.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from geoguardian.exceptions import NotificationError

logger = logging.getLogger(__name__)


class NotificationContent(BaseModel):
    """A fully rendered message, ready for delivery."""
    sender: str
    subject: str
    text: str
    html: str


class NotificationChannel(ABC):
    """Deliver rendered content to a recipient. Raises NotificationError on failure."""

    @abstractmethod
    async def send(self, recipient: str, content: NotificationContent) -> None:
        ...


class WebhookNotificationChannel(NotificationChannel):
    """Post notifications as JSON to a mail relay endpoint."""

    def __init__(self, webhook_url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client = client

    async def send(self, recipient: str, content: NotificationContent) -> None:
        payload = {"to": recipient, **content.model_dump()}

        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Relay request to {self.webhook_url} failed: {e}") from e

        if response.status_code >= 300:
            raise NotificationError(
                f"Relay returned status {response.status_code} for {recipient}"
            )
        logger.info("Notification relayed for %s. Status: %s", recipient, response.status_code)


class LogNotificationChannel(NotificationChannel):
    """Write notifications to the log instead of delivering them."""

    async def send(self, recipient: str, content: NotificationContent) -> None:
        logger.info("Notification for %s: %s", recipient, content.subject)
        logger.debug("Notification body:\n%s", content.text)
