"""
Check-in repository for database operations.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.checkin import CheckinClaim, PromotionCheckin


class CheckinRepository:
    """Repository for promotion check-ins."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def claim(self, user_id: str, promotion_id: str, now: datetime, cooldown: timedelta) -> bool:
        """
        Atomically claim the check-in slot for (user_id, promotion_id).

        The conditional update only matches when the previous check-in is
        older than the cooldown. Under READ COMMITTED a concurrent updater
        re-checks that predicate against the committed row, so only one of
        two racing requests can win. A first-ever check-in inserts the claim
        row; the unique constraint rejects the loser of that race.

        Returns:
            True if this request owns the slot, False if a check-in within
            the cooldown already exists.
        """
        result = await self.db.execute(
            update(CheckinClaim)
            .where(
                CheckinClaim.user_id == user_id,
                CheckinClaim.promotion_id == promotion_id,
                CheckinClaim.last_checkin_at <= now - cooldown,
            )
            .values(last_checkin_at=now)
        )
        if self._get_rowcount(result) == 1:
            return True

        try:
            async with self.db.begin_nested():
                self.db.add(CheckinClaim(user_id=user_id, promotion_id=promotion_id, last_checkin_at=now))
                await self.db.flush()
        except IntegrityError:
            return False
        return True

    async def last_checkin_at(self, user_id: str, promotion_id: str) -> Optional[datetime]:
        result = await self.db.execute(
            select(CheckinClaim.last_checkin_at).where(
                CheckinClaim.user_id == user_id,
                CheckinClaim.promotion_id == promotion_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> PromotionCheckin:
        """Persist a check-in attempt."""
        checkin = PromotionCheckin(**fields)
        self.db.add(checkin)
        await self.db.flush()
        return checkin

    async def mark_reward_claimed(self, checkin_id: str, claimed_at: datetime) -> bool:
        """Mark a verified check-in's reward as credited."""
        result = await self.db.execute(
            update(PromotionCheckin)
            .where(PromotionCheckin.id == checkin_id, PromotionCheckin.reward_claimed.is_(False))
            .values(reward_claimed=True, reward_claimed_at=claimed_at)
        )
        return self._get_rowcount(result) > 0
