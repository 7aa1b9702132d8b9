"""
Tests for the Reward Attempt Validator.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import InputValidationError
from models.abuse_log import AbuseSeverity, AbuseType
from schemas.common import CheckOutcome
from schemas.rate_limit import WindowState
from services.reward_validator import RewardAttemptValidator


def _window(rate_limited: bool = False) -> WindowState:
    return WindowState(
        action_type="reward_claim",
        recent_count=5 if rate_limited else 0,
        max_allowed=5,
        window_minutes=1,
        is_rate_limited=rate_limited,
        retry_after_seconds=30 if rate_limited else 0,
    )


@pytest.fixture
def abuse_log():
    service = MagicMock()
    service.log = AsyncMock()
    return service


@pytest.fixture
def rate_limiter():
    service = MagicMock()
    service.consume = AsyncMock(return_value=_window())
    return service


@pytest.fixture
def trust():
    service = MagicMock()
    service.trust_score = AsyncMock(return_value=100)
    return service


@pytest.fixture
def validator(mock_db_session, abuse_log, rate_limiter, trust):
    return RewardAttemptValidator(mock_db_session, abuse_log=abuse_log, rate_limiter=rate_limiter, trust=trust)


def _logged_types(abuse_log) -> list[AbuseType]:
    return [call.kwargs["abuse_type"] for call in abuse_log.log.await_args_list]


@pytest.mark.unit
class TestRewardScoring:
    """Tests for the scoring rules."""

    async def test_clean_attempt_is_valid(self, validator, abuse_log):
        result = await validator.validate("user-123", 85, 100, 100)

        assert result.valid is True
        assert result.score == 100
        assert result.flags == []
        assert result.should_block is False
        assert result.outcome == CheckOutcome.ALLOWED
        assert result.reward_multiplier == 1.0
        abuse_log.log.assert_not_called()

    async def test_perfect_attention_on_short_watch_is_blocked(self, validator, abuse_log):
        result = await validator.validate("user-123", 100, 10, 100)

        assert "attention_manipulation_suspected" in result.flags
        assert "insufficient_watch_time" in result.flags
        assert result.score <= 60
        assert result.score == 40
        assert result.should_block is True
        assert result.valid is False
        assert _logged_types(abuse_log) == [AbuseType.ATTENTION_FRAUD]
        assert abuse_log.log.await_args.kwargs["severity"] == AbuseSeverity.MEDIUM

    async def test_manipulation_alone_blocks_despite_passing_score(self, validator, abuse_log):
        # 80s of 100s is above the 70% floor, so only the manipulation rule fires
        result = await validator.validate("user-123", 100, 80, 100)

        assert result.flags == ["attention_manipulation_suspected"]
        assert result.score == 60
        assert result.should_block is True
        assert result.valid is False
        assert result.outcome == CheckOutcome.DENIED
        assert _logged_types(abuse_log) == [AbuseType.ATTENTION_FRAUD]

    async def test_low_attention(self, validator):
        result = await validator.validate("user-123", 20, 100, 100)

        assert result.flags == ["low_attention"]
        assert result.score == 70
        assert result.valid is True

    async def test_extended_watch_is_penalized_not_blocked(self, validator):
        result = await validator.validate("user-123", 80, 200, 100)

        assert result.flags == ["extended_watch_time"]
        assert result.score == 90
        assert result.should_block is False

    async def test_borderline_score_is_accepted_but_not_valid(self, validator, abuse_log):
        # 100 - 30 (low attention) - 20 (insufficient watch) = 50
        result = await validator.validate("user-123", 10, 50, 100)

        assert result.score == 50
        assert result.valid is False
        assert result.should_block is False
        abuse_log.log.assert_not_called()

    async def test_score_below_40_is_blocked_and_logged(self, validator, abuse_log):
        # 100 - 30 - 20 - 50 (rate limit) = 0
        validator.rate_limiter.consume = AsyncMock(return_value=_window(rate_limited=True))

        result = await validator.validate("user-123", 10, 10, 100)

        assert result.score == 0
        assert result.should_block is True
        assert _logged_types(abuse_log) == [AbuseType.RATE_LIMIT_EXCEEDED, AbuseType.SUSPICIOUS_PATTERN]
        pattern = abuse_log.log.await_args_list[-1].kwargs
        assert pattern["severity"] == AbuseSeverity.HIGH
        assert pattern["details"]["flags"] == ["rate_limit_exceeded", "low_attention", "insufficient_watch_time"]

    async def test_rate_limited_attempt_blocks(self, validator):
        validator.rate_limiter.consume = AsyncMock(return_value=_window(rate_limited=True))

        result = await validator.validate("user-123", 85, 100, 100)

        assert result.flags == ["rate_limit_exceeded"]
        assert result.score == 50
        assert result.should_block is True

    async def test_trust_is_read_after_logging(self, validator, trust):
        trust.trust_score = AsyncMock(return_value=55)

        result = await validator.validate("user-123", 100, 10, 100)

        trust.trust_score.assert_awaited_once_with("user-123", use_cache=False)
        assert result.trust_score == 55
        assert result.reward_multiplier == 0.7


@pytest.mark.unit
class TestRewardValidationErrors:
    """Tests for input validation and store failures."""

    @pytest.mark.parametrize(
        "attention,watch,required",
        [(-1, 10, 10), (101, 10, 10), (50, -1, 10), (50, 10, 0)],
    )
    async def test_out_of_range_inputs_rejected(self, validator, rate_limiter, attention, watch, required):
        with pytest.raises(InputValidationError):
            await validator.validate("user-123", attention, watch, required)
        rate_limiter.consume.assert_not_called()

    async def test_store_failure_is_indeterminate(self, validator, mock_db_session):
        validator.rate_limiter.consume = AsyncMock(side_effect=OperationalError("update", {}, Exception("down")))

        result = await validator.validate("user-123", 85, 100, 100)

        assert result.outcome == CheckOutcome.INDETERMINATE
        assert result.should_block is True
        mock_db_session.rollback.assert_awaited_once()
