"""
Tests for the Trust Score Aggregator.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.abuse_log import AbuseSeverity, AbuseType
from models.trust_profile import UserTrustProfile
from schemas.trust import AccountState
from services.abuse_log_service import AbuseLogService
from services.trust_score_service import (
    TrustScoreService,
    compute_trust_score,
    reward_multiplier,
    should_throttle,
)


class TestComputeTrustScore:
    """Tests for the pure scoring function."""

    def test_clean_history_is_100(self):
        assert compute_trust_score({}) == 100

    def test_penalties_per_severity(self):
        assert compute_trust_score({"low": 1}) == 95
        assert compute_trust_score({"medium": 1}) == 85
        assert compute_trust_score({"high": 1}) == 70
        assert compute_trust_score({"critical": 1}) == 50

    def test_penalties_accumulate(self):
        assert compute_trust_score({"low": 2, "medium": 1, "high": 1}) == 45

    def test_floored_at_zero(self):
        assert compute_trust_score({"critical": 3, "high": 5}) == 0

    @pytest.mark.parametrize(
        "score,multiplier",
        [(100, 1.0), (90, 1.0), (89, 0.9), (70, 0.9), (69, 0.7), (50, 0.7), (49, 0.5), (0, 0.5)],
    )
    def test_reward_multiplier_tiers(self, score, multiplier):
        assert reward_multiplier(score) == multiplier

    def test_throttle_below_50(self):
        assert should_throttle(49) is True
        assert should_throttle(50) is False


def _locked_profile() -> UserTrustProfile:
    return UserTrustProfile(
        user_id="user-123",
        streak_days=0,
        longest_streak=0,
        locked_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
        lock_reason="Account locked due to repeated suspicious activity",
    )


@pytest.fixture
def trust(mock_db_session, cache):
    service = TrustScoreService(mock_db_session, cache=cache, ttl_seconds=30)
    service.abuse_logs = MagicMock()
    service.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={})
    service.profiles = MagicMock()
    service.profiles.get = AsyncMock(return_value=None)
    return service


@pytest.mark.unit
class TestTrustScoreService:
    """Tests for cached score reads."""

    async def test_score_is_cached(self, trust):
        assert await trust.trust_score("user-123") == 100
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"high": 1})

        assert await trust.trust_score("user-123") == 100

    async def test_cache_bypass_reads_store(self, trust):
        await trust.trust_score("user-123")
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"high": 1})

        assert await trust.trust_score("user-123", use_cache=False) == 70

    async def test_logging_a_violation_invalidates_cache(self, trust, mock_db_session, cache):
        await trust.trust_score("user-123")
        abuse_log = AbuseLogService(mock_db_session, cache=cache)
        abuse_log.repo = MagicMock()
        abuse_log.repo.create = AsyncMock()
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"medium": 1})

        await abuse_log.log("user-123", AbuseType.RATE_LIMIT_EXCEEDED, AbuseSeverity.MEDIUM)

        assert await trust.trust_score("user-123") == 85

    async def test_zero_ttl_disables_cache(self, mock_db_session, cache):
        service = TrustScoreService(mock_db_session, cache=cache, ttl_seconds=0)
        service.abuse_logs = MagicMock()
        service.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={})

        await service.trust_score("user-123")
        await service.trust_score("user-123")

        assert service.abuse_logs.unresolved_severity_counts.await_count == 2

    async def test_per_user_multiplier_and_throttle(self, trust):
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"critical": 1, "low": 1})

        assert await trust.reward_multiplier("user-123") == 0.5
        assert await trust.should_throttle("user-123") is True

    async def test_summary(self, trust):
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"high": 1})

        summary = await trust.summary("user-123")

        assert summary.trust_score == 70
        assert summary.reward_multiplier == 0.9
        assert summary.should_throttle is False
        assert summary.account_state == AccountState.NORMAL


@pytest.mark.unit
class TestAccountState:
    """Tests for the derived account state."""

    async def test_normal(self, trust):
        assert await trust.account_state("user-123") == AccountState.NORMAL

    async def test_throttled_below_50(self, trust):
        trust.abuse_logs.unresolved_severity_counts = AsyncMock(return_value={"high": 2})

        assert await trust.account_state("user-123") == AccountState.THROTTLED

    async def test_locked_wins_over_score(self, trust):
        trust.profiles.get = AsyncMock(return_value=_locked_profile())

        assert await trust.account_state("user-123") == AccountState.LOCKED
        trust.abuse_logs.unresolved_severity_counts.assert_not_called()

    async def test_unlocked_profile_falls_back_to_score(self, trust):
        profile = _locked_profile()
        profile.locked_at = None
        trust.profiles.get = AsyncMock(return_value=profile)

        assert await trust.account_state("user-123") == AccountState.NORMAL
