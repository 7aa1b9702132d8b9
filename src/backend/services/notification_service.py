"""
Notification Service

Dispatches security and reward notifications to the external notification
service. Fire-and-forget: delivery failures are logged and never change
the outcome of the check that triggered them.
"""

from typing import Any, Optional

import httpx
import structlog

from core.config import settings

logger = structlog.get_logger(__name__)


class NotificationType:
    SECURITY = "security"
    REWARD = "reward"


class NotificationService:
    """HTTP client for the notification dispatch endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.NOTIFICATION_SERVICE_URL
        self.token = token if token is not None else settings.NOTIFICATION_SERVICE_TOKEN
        self.timeout = timeout or settings.EXTERNAL_SERVICE_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self.base_url)

    async def notify(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
        notification_type: str = NotificationType.SECURITY,
    ) -> bool:
        """Send one notification. Returns whether it was accepted."""
        if not self.is_available:
            logger.warning("notification_service_not_configured", user_id=user_id, title=title)
            return False

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        payload = {
            "user_id": user_id,
            "type": notification_type,
            "title": title,
            "body": body,
            "data": data or {},
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/notifications", json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("notification_failed", user_id=user_id, title=title, error=str(e))
            return False

        logger.info("notification_sent", user_id=user_id, title=title)
        return True


notification_service = NotificationService()


async def get_notification_service() -> NotificationService:
    """Dependency injection for the notification service."""
    return notification_service
