"""
Account activity repository for database operations.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.account_activity import AccountActivityLog


class ActivityRepository:
    """Repository for account activity entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: str,
        activity_type: str,
        status: str,
        created_at: datetime,
        details: Optional[dict[str, Any]] = None,
        device_fingerprint: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AccountActivityLog:
        entry = AccountActivityLog(
            user_id=user_id,
            activity_type=activity_type,
            status=status,
            details=details or {},
            device_fingerprint=device_fingerprint,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=created_at,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def count_since(self, user_id: str, activity_type: str, status: str, since: datetime) -> int:
        """Count a user's activity entries of one type and status since a point in time."""
        result = await self.db.execute(
            select(func.count(AccountActivityLog.id)).where(
                AccountActivityLog.user_id == user_id,
                AccountActivityLog.activity_type == activity_type,
                AccountActivityLog.status == status,
                AccountActivityLog.created_at >= since,
            )
        )
        return result.scalar() or 0
