"""
Tests for the Session Security Enforcer.

Covers:
- Session validation against locks, flagged devices and failed logins
- Login attempt recording
- Forced logout
- Suspicious activity escalation into an account lock
- Admin unlock
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import StoreUnavailableError
from models.abuse_log import AbuseSeverity, AbuseType
from models.account_activity import ActivityType
from models.trust_profile import UserTrustProfile
from schemas.common import CheckOutcome
from schemas.trust import AccountState
from services.policy import TrustConfig
from services.session_security_service import SessionSecurityService
from services.trust_score_service import TrustScoreService

FINGERPRINT = "f" * 64


@pytest.fixture
def abuse_log():
    service = MagicMock()
    service.log = AsyncMock()
    service.count_since = AsyncMock(return_value=1)
    return service


@pytest.fixture
def devices():
    service = MagicMock()
    service.penalize = AsyncMock()
    service.invalidate_devices = AsyncMock(return_value=2)
    service.release_devices = AsyncMock(return_value=2)
    return service


@pytest.fixture
def trust():
    service = MagicMock()
    service.trust_score = AsyncMock(return_value=85)
    return service


@pytest.fixture
def profile():
    return UserTrustProfile(user_id="user-123", streak_days=0, longest_streak=0)


@pytest.fixture
def sessions(mock_db_session, abuse_log, devices, trust, mock_notifier, profile):
    service = SessionSecurityService(
        mock_db_session, abuse_log=abuse_log, devices=devices, trust=trust, notifier=mock_notifier
    )
    service.device_repo = MagicMock()
    service.device_repo.get = AsyncMock(return_value=None)
    service.activity = MagicMock()
    service.activity.create = AsyncMock()
    service.activity.count_since = AsyncMock(return_value=0)
    service.profiles.get = AsyncMock(return_value=profile)
    service.profiles.get_for_update = AsyncMock(return_value=profile)
    return service


def _activity_types(sessions) -> list[str]:
    return [call.kwargs["activity_type"] for call in sessions.activity.create.await_args_list]


@pytest.mark.unit
class TestCheckSession:
    """Tests for session validation."""

    async def test_valid_session(self, sessions):
        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.valid is True
        assert result.outcome == CheckOutcome.ALLOWED
        assert result.trust_score == 85
        sessions.activity.create.assert_not_called()

    async def test_locked_account_is_denied(self, sessions, mock_db_session, profile):
        profile.locked_at = datetime(2026, 3, 10, tzinfo=timezone.utc)
        profile.lock_reason = TrustConfig.ACCOUNT_LOCK_REASON

        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.valid is False
        assert result.reason == "account_locked"
        assert result.details == TrustConfig.ACCOUNT_LOCK_REASON
        assert result.require_reauth is True
        sessions.device_repo.get.assert_not_called()
        mock_db_session.commit.assert_awaited_once()

    async def test_flagged_device_is_denied(
self, sessions, mock_db_session, abuse_log):
        sessions.device_repo.get = AsyncMock(
            return_value=MagicMock(flagged=True, flag_reason=TrustConfig.FORCED_LOGOUT_REASON)
        )

        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.valid is False
        assert result.reason == "device_flagged"
        assert result.details == TrustConfig.FORCED_LOGOUT_REASON
        assert result.require_reauth is True
        assert _activity_types(sessions) == [ActivityType.SESSION_DENIED.value]
        abuse_log.log.assert_not_called()
        mock_db_session.commit.assert_awaited_once()

    async def test_five_failed_logins_lock_out_for_30_minutes(self, sessions):
        sessions.activity.count_since = AsyncMock(return_value=5)

        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.valid is False
        assert result.reason == "too_many_failed_logins"
        assert result.lockout_minutes == 30
        assert result.require_reauth is True

    async def test_four_failed_logins_still_valid(self, sessions):
        sessions.activity.count_since = AsyncMock(return_value=4)

        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.valid is True

    async def test_store_failure_is_indeterminate_not_denied(self, sessions, mock_db_session):
        sessions.device_repo.get = AsyncMock(side_effect=OperationalError("select", {}, Exception("down")))

        result = await sessions.check_session("user-123", FINGERPRINT)

        assert result.outcome == CheckOutcome.INDETERMINATE
        assert result.valid is None
        mock_db_session.rollback.assert_awaited_once()


@pytest.mark.unit
class TestLoginAttempts:
    """Tests for login attempt recording."""

    async def test_failed_attempt_is_recorded(self, sessions, mock_db_session):
        sessions.activity.count_since = AsyncMock(return_value=3)

        result = await sessions.record_login_attempt("user-123", success=False, device_fingerprint=FINGERPRINT)

        assert result.recorded is True
        assert result.failed_logins_last_hour == 3
        kwargs = sessions.activity.create.await_args.kwargs
        assert kwargs["activity_type"] == ActivityType.LOGIN.value
        assert kwargs["status"] == "failed"
        mock_db_session.commit.assert_awaited_once()

    async def test_store_failure_raises(self, sessions):
        sessions.activity.create = AsyncMock(side_effect=OperationalError("insert", {}, Exception("down")))

        with pytest.raises(StoreUnavailableError):
            await sessions.record_login_attempt("user-123", success=True)


@pytest.mark.unit
class TestForceLogout:
    """Tests for forced logout."""

    async def test_invalidates_devices_and_notifies(self, sessions, devices, mock_notifier):
        result = await sessions.force_logout("user-123", keep_device=FINGERPRINT, reason="password_changed")

        assert result.devices_invalidated == 2
        devices.invalidate_devices.assert_awaited_once_with(
            "user-123", TrustConfig.FORCED_LOGOUT_REASON, keep_fingerprint=FINGERPRINT
        )
        assert _activity_types(sessions) == [ActivityType.FORCED_LOGOUT.value]
        notification = mock_notifier.notify.await_args.kwargs
        assert notification["title"] == "Security Alert"
        assert notification["data"]["action"] == "force_logout"

    async def test_store_failure_sends_no_notification(self, sessions, devices, mock_notifier):
        devices.invalidate_devices = AsyncMock(side_effect=OperationalError("update", {}, Exception("down")))

        with pytest.raises(StoreUnavailableError):
            await sessions.force_logout("user-123")
        mock_notifier.notify.assert_not_called()


@pytest.mark.unit
class TestReportSuspicious:
    """Tests for suspicious activity escalation."""

    async def test_single_report_penalizes_device(self, sessions, abuse_log, devices, mock_notifier):
        result = await sessions.report_suspicious("user-123", device_fingerprint=FINGERPRINT, details={"why": "bot"})

        assert result.account_locked is False
        assert result.suspicious_count == 1
        kwargs = abuse_log.log.await_args.kwargs
        assert kwargs["abuse_type"] == AbuseType.SUSPICIOUS_ACTIVITY
        assert kwargs["severity"] == AbuseSeverity.HIGH
        devices.penalize.assert_awaited_once_with(
            "user-123",
            FINGERPRINT,
            25,
            flag_below=20,
            flag_reason=TrustConfig.SUSPICIOUS_REPORT_REASON,
        )
        devices.invalidate_devices.assert_not_called()
        mock_notifier.notify.assert_not_called()

    async def test_third_report_locks_account(self, sessions, abuse_log, devices, mock_notifier, profile):
        abuse_log.count_since = AsyncMock(return_value=3)

        result = await sessions.report_suspicious("user-123")

        assert result.account_locked is True
        assert profile.locked_at is not None
        assert profile.lock_reason == TrustConfig.ACCOUNT_LOCK_REASON
        devices.penalize.assert_not_called()
        devices.invalidate_devices.assert_awaited_once_with("user-123", TrustConfig.ACCOUNT_LOCK_REASON)
        assert _activity_types(sessions) == [ActivityType.ACCOUNT_LOCKED.value, ActivityType.FORCED_LOGOUT.value]
        logout = sessions.activity.create.await_args_list[1].kwargs
        assert logout["details"] == {"reason": "account_lock", "devices_invalidated": 2}
        notification = mock_notifier.notify.await_args.kwargs
        assert notification["title"] == "Account Security Lock"
        assert notification["data"] == {"action": "account_lock"}

    async def test_lock_without_devices_still_locks(self, sessions, abuse_log, devices, mock_db_session, profile):
        abuse_log.count_since = AsyncMock(return_value=3)
        devices.invalidate_devices = AsyncMock(return_value=0)
        trust = TrustScoreService(mock_db_session)
        trust.profiles.get = AsyncMock(return_value=profile)

        result = await sessions.report_suspicious("user-123")

        assert result.account_locked is True
        assert await trust.account_state("user-123") == AccountState.LOCKED

    async def test_lock_survives_later_force_logout(self, sessions, abuse_log, mock_db_session, profile):
        abuse_log.count_since = AsyncMock(return_value=3)
        trust = TrustScoreService(mock_db_session)
        trust.profiles.get = AsyncMock(return_value=profile)

        await sessions.report_suspicious("user-123")
        await sessions.force_logout("user-123", keep_device=FINGERPRINT)

        assert await trust.account_state("user-123") == AccountState.LOCKED
        result = await sessions.check_session("user-123", FINGERPRINT)
        assert result.valid is False
        assert result.reason == "account_locked"

    async def test_repeat_lock_keeps_first_lock_time(self, sessions, abuse_log, profile):
        first = datetime(2026, 3, 10, tzinfo=timezone.utc)
        profile.locked_at = first
        profile.lock_reason = TrustConfig.ACCOUNT_LOCK_REASON
        abuse_log.count_since = AsyncMock(return_value=4)

        result = await sessions.report_suspicious("user-123")

        assert result.account_locked is True
        assert profile.locked_at == first


    async def test_store_failure_raises_and_rolls_back(self, sessions, abuse_log, mock_db_session):
        abuse_log.log = AsyncMock(side_effect=OperationalError("insert", {}, Exception("down")))

        with pytest.raises(StoreUnavailableError):
            await sessions.report_suspicious("user-123")
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_called()


@pytest.mark.unit
class TestUnlockAccount:
    """Tests for the admin unlock."""

    async def test_unlock_clears_lock_and_releases_devices(self, sessions, devices, mock_db_session, profile):
        profile.locked_at = datetime(2026, 3, 10, tzinfo=timezone.utc)
        profile.lock_reason = TrustConfig.ACCOUNT_LOCK_REASON

        result = await sessions.unlock_account("user-123", reviewed_by="admin-1")

        assert result.was_locked is True
        assert result.devices_released == 2
        assert profile.locked_at is None
        assert profile.lock_reason is None
        devices.release_devices.assert_awaited_once_with("user-123", TrustConfig.ACCOUNT_LOCK_REASON)
        assert _activity_types(sessions) == [ActivityType.ACCOUNT_UNLOCKED.value]
        mock_db_session.commit.assert_awaited_once()

    async def test_unlocking_unlocked_account_is_noop(self, sessions, devices):
        result = await sessions.unlock_account("user-123", reviewed_by="admin-1")

        assert result.was_locked is False
        assert result.devices_released == 0
        devices.release_devices.assert_not_called()
        sessions.activity.create.assert_not_called()

    async def test_store_failure_raises(self, sessions, mock_db_session):
        sessions.profiles.get_for_update = AsyncMock(side_effect=OperationalError("select", {}, Exception("down")))

        with pytest.raises(StoreUnavailableError):
            await sessions.unlock_account("user-123", reviewed_by="admin-1")
        mock_db_session.rollback.assert_awaited_once()
