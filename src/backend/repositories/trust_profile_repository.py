"""
Trust profile repository for database operations.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.trust_profile import UserTrustProfile


class TrustProfileRepository:
    """Repository for user trust profiles (streak and lock state)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> Optional[UserTrustProfile]:
        result = await self.db.execute(select(UserTrustProfile).where(UserTrustProfile.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, user_id: str) -> UserTrustProfile:
        """
        Get the user's profile with a row lock, creating it if missing.
        """
        query = select(UserTrustProfile).where(UserTrustProfile.user_id == user_id).with_for_update()
        result = await self.db.execute(query)
        profile = result.scalar_one_or_none()
        if profile is not None:
            return profile

        profile = UserTrustProfile(user_id=user_id, streak_days=0, longest_streak=0, last_active_date=None)
        try:
            async with self.db.begin_nested():
                self.db.add(profile)
                await self.db.flush()
        except IntegrityError:
            result = await self.db.execute(query)
            return result.scalar_one()
        return profile

    async def update_streak(
        self,
        profile: UserTrustProfile,
        streak_days: int,
        longest_streak: int,
        last_active_date: date,
    ) -> UserTrustProfile:
        profile.streak_days = streak_days
        profile.longest_streak = longest_streak
        profile.last_active_date = last_active_date
        await self.db.flush()
        return profile

    async def set_lock(
        self,
        profile: UserTrustProfile,
        locked_at: Optional[datetime],
        reason: Optional[str] = None,
    ) -> UserTrustProfile:
        """Set or clear (locked_at=None) the account lock on a locked row."""
        profile.locked_at = locked_at
        profile.lock_reason = reason if locked_at is not None else None
        await self.db.flush()
        return profile
