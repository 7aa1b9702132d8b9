"""
Tests for device and trust profile repositories.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_result
from models.device_fingerprint import DeviceFingerprint
from models.trust_profile import UserTrustProfile


def _device(**overrides) -> DeviceFingerprint:
    fields = {
        "id": "device-1",
        "user_id": "user-123",
        "fingerprint_hash": "a" * 64,
        "trust_score": 100,
        "is_trusted": True,
        "flagged": False,
        "flag_reason": None,
    }
    fields.update(overrides)
    return DeviceFingerprint(**fields)


@pytest.mark.unit
class TestDeviceRepository:
    """Test DeviceRepository operations."""

    async def test_create_starts_trusted(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        repo = DeviceRepository(mock_db_session)
        now = datetime.now(timezone.utc)

        device = await repo.create("user-123", "a" * 64, {"language": "en"}, seen_at=now)

        assert device.trust_score == 100
        assert device.is_trusted is True
        assert device.flagged is False
        assert device.first_seen_at == device.last_seen_at == now

    async def test_other_owners(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        mock_db_session.execute = AsyncMock(return_value=make_result(scalars=["user-456", "user-789"]))
        repo = DeviceRepository(mock_db_session)

        assert await repo.other_owners("a" * 64, "user-123") == ["user-456", "user-789"]

    async def test_apply_trust_below_threshold(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        device = _device()
        repo = DeviceRepository(mock_db_session)

        await repo.apply_trust(device, 25, is_trusted=False)

        assert device.trust_score == 25
        assert device.is_trusted is False
        assert device.flagged is False

    async def test_apply_trust_keeps_flagged_device_untrusted(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        device = _device(flagged=True, is_trusted=False, flag_reason="manual")
        repo = DeviceRepository(mock_db_session)

        await repo.apply_trust(device, 90, is_trusted=True)

        assert device.is_trusted is False
        assert device.flagged is True
        assert device.flag_reason == "manual"

    async def test_apply_trust_with_flag_reason_flags(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        device = _device()
        repo = DeviceRepository(mock_db_session)

        await repo.apply_trust(device, 10, is_trusted=False, flag_reason="Suspicious activity reported")

        assert device.flagged is True
        assert device.flag_reason == "Suspicious activity reported"

    async def test_set_flag_returns_rowcount(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        mock_db_session.execute = AsyncMock(return_value=make_result(rowcount=3))
        repo = DeviceRepository(mock_db_session)

        assert await repo.set_flag("a" * 64, True, reason="fraud ring") == 3

    async def test_flag_all_for_user(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        mock_db_session.execute = AsyncMock(return_value=make_result(rowcount=2))
        repo = DeviceRepository(mock_db_session)

        assert await repo.flag_all_for_user("user-123", "locked", except_fingerprint="b" * 64) == 2

    async def test_flag_all_for_user_skips_flagged_rows(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        mock_db_session.execute = AsyncMock(return_value=make_result(rowcount=0))
        repo = DeviceRepository(mock_db_session)

        await repo.flag_all_for_user("user-123", "Forced logout")

        statement = str(mock_db_session.execute.await_args.args[0])
        assert "device_fingerprints.flagged IS false" in statement

    async def test_unflag_all_with_reason_matches_reason(self, mock_db_session) -> None:
        from repositories.device_repository import DeviceRepository

        mock_db_session.execute = AsyncMock(return_value=make_result(rowcount=2))
        repo = DeviceRepository(mock_db_session)

        assert await repo.unflag_all_with_reason("user-123", "Account locked") == 2
        statement = str(mock_db_session.execute.await_args.args[0])
        assert "device_fingerprints.flag_reason = " in statement



@pytest.mark.unit
class TestTrustProfileRepository:
    """Test TrustProfileRepository operations."""

    async def test_existing_profile_is_returned(self, mock_db_session) -> None:
        from repositories.trust_profile_repository import TrustProfileRepository

        profile = UserTrustProfile(user_id="user-123", streak_days=3, longest_streak=5)
        mock_db_session.execute = AsyncMock(return_value=make_result(scalar=profile))
        repo = TrustProfileRepository(mock_db_session)

        assert await repo.get_for_update("user-123") is profile
        mock_db_session.add.assert_not_called()

    async def test_missing_profile_is_created(self, mock_db_session) -> None:
        from repositories.trust_profile_repository import TrustProfileRepository

        repo = TrustProfileRepository(mock_db_session)

        profile = await repo.get_for_update("user-123")

        assert profile.streak_days == 0
        assert profile.last_active_date is None
        mock_db_session.add.assert_called_once_with(profile)

    async def test_concurrent_create_rereads(self, mock_db_session) -> None:
        from repositories.trust_profile_repository import TrustProfileRepository

        existing = UserTrustProfile(user_id="user-123", streak_days=1, longest_streak=1)
        mock_db_session.execute = AsyncMock(side_effect=[make_result(scalar=None), make_result(scalar=existing)])
        mock_db_session.flush = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("duplicate key")))
        repo = TrustProfileRepository(mock_db_session)

        assert await repo.get_for_update("user-123") is existing

    async def test_update_streak(self, mock_db_session) -> None:
        from repositories.trust_profile_repository import TrustProfileRepository

        profile = UserTrustProfile(user_id="user-123", streak_days=3, longest_streak=5)
        repo = TrustProfileRepository(mock_db_session)

        await repo.update_streak(profile, 4, 5, date(2026, 3, 10))

        assert (profile.streak_days, profile.longest_streak, profile.last_active_date) == (4, 5, date(2026, 3, 10))

    async def test_set_and_clear_lock(self, mock_db_session) -> None:
        from repositories.trust_profile_repository import TrustProfileRepository

        profile = UserTrustProfile(user_id="user-123", streak_days=0, longest_streak=0)
        repo = TrustProfileRepository(mock_db_session)
        locked_at = datetime(2026, 3, 10, tzinfo=timezone.utc)

        await repo.set_lock(profile, locked_at, "Account locked")
        assert (profile.locked_at, profile.lock_reason) == (locked_at, "Account locked")

        await repo.set_lock(profile, None, "ignored")
        assert (profile.locked_at, profile.lock_reason) == (None, None)
