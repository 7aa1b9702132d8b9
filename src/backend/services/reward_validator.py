"""
Reward Attempt Validator.

Scores a reward claim (e.g. "watched this video, pay me") from the client's
reported attention and watch time, and from how fast the user is claiming.

Attention score and watch duration are self-reported by the client. The
scoring below catches inconsistent reports, not a client that lies
consistently.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InputValidationError
from models.abuse_log import AbuseSeverity, AbuseType
from schemas.common import CheckOutcome
from schemas.reward import RewardAttemptResult
from services.abuse_log_service import AbuseLogService
from services.policy import TrustConfig
from services.rate_limiter import RateLimiterService
from services.trust_score_service import TrustScoreService, reward_multiplier

logger = structlog.get_logger(__name__)


class RewardAttemptValidator:
    """Anti-cheat scoring for reward claims."""

    def __init__(
        self,
        db: AsyncSession,
        abuse_log: Optional[AbuseLogService] = None,
        rate_limiter: Optional[RateLimiterService] = None,
        trust: Optional[TrustScoreService] = None,
    ):
        self.db = db
        self.abuse_log = abuse_log or AbuseLogService(db)
        self.rate_limiter = rate_limiter or RateLimiterService(db, abuse_log=self.abuse_log)
        self.trust = trust or TrustScoreService(db, cache=self.abuse_log.cache)

    @staticmethod
    def _validate_inputs(attention_score: float, watch_duration: float, required_duration: float) -> None:
        if not 0 <= attention_score <= 100:
            raise InputValidationError("attention_score must be between 0 and 100", field="attention_score")
        if watch_duration < 0:
            raise InputValidationError("watch_duration_seconds must not be negative", field="watch_duration_seconds")
        if required_duration <= 0:
            raise InputValidationError(
                "required_duration_seconds must be positive", field="required_duration_seconds"
            )

    async def validate(
        self,
        user_id: str,
        attention_score: float,
        watch_duration_seconds: float,
        required_duration_seconds: float,
        device_fingerprint: Optional[str] = None,
    ) -> RewardAttemptResult:
        """
        Score a reward attempt.

        Starts at 100 and subtracts per signal. Below 40 the attempt is
        blocked and logged as suspicious_pattern. The trust score and
        multiplier returned are read after this call's own violations were
        logged.
        """
        self._validate_inputs(attention_score, watch_duration_seconds, required_duration_seconds)

        score = 100
        flags: list[str] = []
        should_block = False
        watch = watch_duration_seconds
        required = required_duration_seconds

        try:
            window = await self.rate_limiter.consume(user_id, TrustConfig.REWARD_CLAIM_ACTION)
            if window.is_rate_limited:
                flags.append("rate_limit_exceeded")
                score -= TrustConfig.RATE_LIMIT_PENALTY
                should_block = True
                await self.abuse_log.log(
                    user_id=user_id,
                    abuse_type=AbuseType.RATE_LIMIT_EXCEEDED,
                    severity=AbuseSeverity.MEDIUM,
                    details={
                        "action_type": TrustConfig.REWARD_CLAIM_ACTION,
                        "recent_count": window.recent_count,
                        "max_allowed": window.max_allowed,
                        "window_minutes": window.window_minutes,
                    },
                    device_fingerprint=device_fingerprint,
                )

            if attention_score < TrustConfig.LOW_ATTENTION_THRESHOLD:
                flags.append("low_attention")
                score -= TrustConfig.LOW_ATTENTION_PENALTY

            if (
                attention_score > TrustConfig.ATTENTION_MANIPULATION_THRESHOLD
                and watch < required * TrustConfig.ATTENTION_MANIPULATION_WATCH_RATIO
            ):
                # Perfect attention over a short watch is an automation signature
                flags.append("attention_manipulation_suspected")
                score -= TrustConfig.ATTENTION_MANIPULATION_PENALTY
                should_block = True
                await self.abuse_log.log(
                    user_id=user_id,
                    abuse_type=AbuseType.ATTENTION_FRAUD,
                    severity=AbuseSeverity.MEDIUM,
                    details={
                        "attention_score": attention_score,
                        "watch_duration": watch,
                        "required_duration": required,
                    },
                    device_fingerprint=device_fingerprint,
                )

            if watch < required * TrustConfig.INSUFFICIENT_WATCH_RATIO:
                flags.append("insufficient_watch_time")
                score -= TrustConfig.INSUFFICIENT_WATCH_PENALTY

            if watch > required * TrustConfig.EXTENDED_WATCH_RATIO:
                # Idle tab, penalized lightly
                flags.append("extended_watch_time")
                score -= TrustConfig.EXTENDED_WATCH_PENALTY

            score = max(0, min(100, score))

            if score < TrustConfig.BLOCK_BELOW_SCORE:
                should_block = True
                await self.abuse_log.log(
                    user_id=user_id,
                    abuse_type=AbuseType.SUSPICIOUS_PATTERN,
                    severity=AbuseSeverity.HIGH,
                    details={
                        "score": score,
                        "flags": flags,
                        "attention_score": attention_score,
                        "watch_duration": watch,
                        "required_duration": required,
                    },
                    device_fingerprint=device_fingerprint,
                )

            trust_score = await self.trust.trust_score(user_id, use_cache=False)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("reward_validation_failed", user_id=user_id, error=str(e))
            return RewardAttemptResult(
                outcome=CheckOutcome.INDETERMINATE,
                valid=False,
                score=0,
                flags=flags,
                should_block=True,
            )

        valid = score >= TrustConfig.VALID_MIN_SCORE and not should_block
        if should_block:
            logger.warning("reward_attempt_blocked", user_id=user_id, score=score, flags=flags)

        return RewardAttemptResult(
            outcome=CheckOutcome.DENIED if should_block else CheckOutcome.ALLOWED,
            valid=valid,
            score=score,
            flags=flags,
            should_block=should_block,
            trust_score=trust_score,
            reward_multiplier=reward_multiplier(trust_score),
        )
