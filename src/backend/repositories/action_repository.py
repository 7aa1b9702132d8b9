"""
User action repository.

Backs the sliding-window rate limiter: a per-(user, action type) guard row
that serializes concurrent checks, plus the append-only action log the
windows are counted from.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.user_action import ActionWindowGuard, UserAction


class ActionRepository:
    """Repository for rate-limited user actions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_window(self, user_id: str, action_type: str, now: datetime) -> None:
        """
        Take the row lock for (user_id, action_type).

        Bumping the guard row's version holds its lock until the surrounding
        transaction ends. A missing guard row is inserted in a savepoint; if a
        concurrent request inserted it first, the update is retried and waits
        on that request's lock.
        """
        if await self._bump_guard(user_id, action_type, now):
            return

        try:
            async with self.db.begin_nested():
                self.db.add(ActionWindowGuard(user_id=user_id, action_type=action_type, version=1, updated_at=now))
                await self.db.flush()
        except IntegrityError:
            await self._bump_guard(user_id, action_type, now)

    async def _bump_guard(self, user_id: str, action_type: str, now: datetime) -> bool:
        result = await self.db.execute(
            update(ActionWindowGuard)
            .where(
                ActionWindowGuard.user_id == user_id,
                ActionWindowGuard.action_type == action_type,
            )
            .values(version=ActionWindowGuard.version + 1, updated_at=now)
        )
        return (getattr(result, "rowcount", 0) or 0) > 0

    async def window_stats(
        self,
        user_id: str,
        action_type: str,
        since: datetime,
    ) -> tuple[int, Optional[datetime]]:
        """Count actions in the window and return the oldest one's timestamp."""
        result = await self.db.execute(
            select(func.count(UserAction.id), func.min(UserAction.created_at)).where(
                UserAction.user_id == user_id,
                UserAction.action_type == action_type,
                UserAction.created_at >= since,
            )
        )
        count, oldest = result.one()
        return count or 0, oldest

    async def has_content(self, user_id: str, action_type: str, content_hash: str, since: datetime) -> bool:
        """Whether the same payload was already produced within the window."""
        result = await self.db.execute(
            select(func.count(UserAction.id)).where(
                UserAction.user_id == user_id,
                UserAction.action_type == action_type,
                UserAction.content_hash == content_hash,
                UserAction.created_at >= since,
            )
        )
        return (result.scalar() or 0) > 0

    async def record(
        self,
        user_id: str,
        action_type: str,
        created_at: datetime,
        content_hash: Optional[str] = None,
    ) -> UserAction:
        """Append an allowed action to the log."""
        action = UserAction(
            user_id=user_id,
            action_type=action_type,
            content_hash=content_hash,
            created_at=created_at,
        )
        self.db.add(action)
        await self.db.flush()
        return action
