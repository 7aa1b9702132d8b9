"""
Trust Score Aggregator.

A user's trust score is derived, never stored: 100 minus a fixed penalty
per unresolved abuse log entry, floored at 0. Every caller that needs the
score goes through this service so the penalty table lives in one place.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from repositories.abuse_log_repository import AbuseLogRepository
from repositories.trust_profile_repository import TrustProfileRepository
from schemas.trust import AccountState, TrustSummary
from services.cache_service import CacheService, cache_service
from services.policy import TrustConfig

logger = structlog.get_logger(__name__)


def compute_trust_score(severity_counts: dict[str, int]) -> int:
    """Score from unresolved entry counts keyed by severity."""
    penalty = sum(
        TrustConfig.SEVERITY_PENALTIES.get(severity, 0) * count for severity, count in severity_counts.items()
    )
    return max(0, min(TrustConfig.MAX_TRUST_SCORE, TrustConfig.MAX_TRUST_SCORE - penalty))


def reward_multiplier(score: int) -> float:
    """Reward multiplier for a trust score."""
    for min_score, multiplier in TrustConfig.REWARD_MULTIPLIER_TIERS:
        if score >= min_score:
            return multiplier
    return TrustConfig.MIN_REWARD_MULTIPLIER


def should_throttle(score: int) -> bool:
    return score < TrustConfig.THROTTLE_BELOW


class TrustScoreService:
    """Reads and caches derived trust scores."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[CacheService] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.db = db
        self.abuse_logs = AbuseLogRepository(db)
        self.profiles = TrustProfileRepository(db)
        self.cache = cache or cache_service
        self.ttl_seconds = settings.TRUST_SCORE_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds

    async def trust_score(self, user_id: str, use_cache: bool = True) -> int:
        """Current trust score in [0, 100]."""
        key = self.cache.trust_score_key(user_id)
        if use_cache:
            cached = await self.cache.cache_get(key)
            if cached is not None:
                return cached

        counts = await self.abuse_logs.unresolved_severity_counts(user_id)
        score = compute_trust_score(counts)
        await self.cache.cache_set(key, score, self.ttl_seconds)
        return score

    async def reward_multiplier(self, user_id: str) -> float:
        return reward_multiplier(await self.trust_score(user_id))

    async def should_throttle(self, user_id: str) -> bool:
        return should_throttle(await self.trust_score(user_id))

    async def account_state(self, user_id: str, score: Optional[int] = None) -> AccountState:
        """
        Derived account state.

        Locked while the trust profile carries a lock; only an admin unlock
        clears it.
        """
        profile = await self.profiles.get(user_id)
        if profile is not None and profile.locked_at is not None:
            return AccountState.LOCKED
        if score is None:
            score = await self.trust_score(user_id)
        return AccountState.THROTTLED if should_throttle(score) else AccountState.NORMAL

    async def summary(self, user_id: str) -> TrustSummary:
        score = await self.trust_score(user_id)
        state = await self.account_state(user_id, score=score)
        return TrustSummary(
            user_id=user_id,
            trust_score=score,
            reward_multiplier=reward_multiplier(score),
            should_throttle=should_throttle(score),
            account_state=state,
        )
