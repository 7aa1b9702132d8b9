"""
Abuse log repository for database operations.

Insert and query only. Entries are never updated or deleted here.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.abuse_log import AbuseLog


class AbuseLogRepository:
    """Repository for abuse log database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: str,
        abuse_type: str,
        severity: str,
        details: dict[str, Any],
        created_at: datetime,
        device_fingerprint: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AbuseLog:
        """Append an abuse log entry."""
        entry = AbuseLog(
            user_id=user_id,
            abuse_type=abuse_type,
            severity=severity,
            details=details,
            device_fingerprint=device_fingerprint,
            ip_address=ip_address,
            user_agent=user_agent,
            resolved=False,
            created_at=created_at,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def unresolved_severity_counts(self, user_id: str) -> dict[str, int]:
        """Count a user's unresolved entries grouped by severity."""
        result = await self.db.execute(
            select(AbuseLog.severity, func.count(AbuseLog.id))
            .where(AbuseLog.user_id == user_id, AbuseLog.resolved.is_(False))
            .group_by(AbuseLog.severity)
        )
        return {severity: count for severity, count in result.all()}

    async def count_since(self, user_id: str, abuse_type: str, since: datetime) -> int:
        """Count a user's entries of one type created at or after `since`."""
        result = await self.db.execute(
            select(func.count(AbuseLog.id)).where(
                AbuseLog.user_id == user_id,
                AbuseLog.abuse_type == abuse_type,
                AbuseLog.created_at >= since,
            )
        )
        return result.scalar() or 0

    async def search(
        self,
        user_id: Optional[str] = None,
        abuse_type: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AbuseLog]:
        """Query entries for audit export, newest first."""
        query = select(AbuseLog)
        if user_id:
            query = query.where(AbuseLog.user_id == user_id)
        if abuse_type:
            query = query.where(AbuseLog.abuse_type == abuse_type)
        if since:
            query = query.where(AbuseLog.created_at >= since)
        if until:
            query = query.where(AbuseLog.created_at < until)

        query = query.order_by(AbuseLog.created_at.desc()).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
