"""Tests for the notification and ledger HTTP clients."""

import json

import httpx
import pytest

from services.ledger_client import LedgerClient
from services.notification_service import NotificationService, NotificationType


def _recording_transport(requests: list, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json={"ok": status_code < 400})

    return httpx.MockTransport(handler)


@pytest.mark.unit
class TestNotificationService:
    """Tests for NotificationService."""

    async def test_not_configured_skips_dispatch(self):
        service = NotificationService(base_url="")

        assert service.is_available is False
        assert await service.notify("user-123", "Security Alert", "body") is False

    async def test_notification_is_posted(self):
        requests: list[httpx.Request] = []
        service = NotificationService(
            base_url="http://notify.test", token="secret", transport=_recording_transport(requests)
        )

        sent = await service.notify(
            "user-123",
            "Check-in verified",
            "You earned 125 vicoin.",
            data={"action": "checkin_verified"},
            notification_type=NotificationType.REWARD,
        )

        assert sent is True
        assert len(requests) == 1
        assert requests[0].url.path == "/notifications"
        assert requests[0].headers["Authorization"] == "Bearer secret"
        payload = json.loads(requests[0].content)
        assert payload["type"] == "reward"
        assert payload["data"] == {"action": "checkin_verified"}

    async def test_server_error_is_reported_not_raised(self):
        service = NotificationService(base_url="http://notify.test", transport=_recording_transport([], 503))

        assert await service.notify("user-123", "Security Alert", "body") is False


@pytest.mark.unit
class TestLedgerClient:
    """Tests for LedgerClient."""

    async def test_not_configured_fails_closed(self):
        client = LedgerClient(base_url="")

        assert client.is_configured is False
        assert await client.credit("user-123", "vicoin", 125, reference_id="checkin:1") is False

    async def test_credit_posts_reference(self):
        requests: list[httpx.Request] = []
        client = LedgerClient(base_url="http://ledger.test", transport=_recording_transport(requests))

        assert await client.credit("user-123", "icoin", 50, reference_id="checkin:abc") is True
        assert requests[0].url.path == "/credits"
        assert "Authorization" not in requests[0].headers
        assert json.loads(requests[0].content) == {
            "user_id": "user-123",
            "coin_type": "icoin",
            "amount": 50,
            "reference_id": "checkin:abc",
        }

    async def test_rejected_credit_returns_false(self):
        client = LedgerClient(base_url="http://ledger.test", transport=_recording_transport([], 409))

        assert await client.credit("user-123", "vicoin", 10, reference_id="checkin:1") is False

    async def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = LedgerClient(base_url="http://ledger.test", transport=httpx.MockTransport(handler))

        assert await client.credit("user-123", "vicoin", 10, reference_id="checkin:1") is False
