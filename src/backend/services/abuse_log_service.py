"""
Abuse Log Service.

Single write path for violations. Every append invalidates the user's
cached trust score so the next read reflects it.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from models.abuse_log import AbuseLog, AbuseSeverity, AbuseType
from repositories.abuse_log_repository import AbuseLogRepository
from services.cache_service import CacheService, cache_service

logger = structlog.get_logger(__name__)


class AbuseLogService:
    """Append-only access to the abuse log."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.repo = AbuseLogRepository(db)
        self.cache = cache or cache_service

    async def log(
        self,
        user_id: str,
        abuse_type: AbuseType,
        severity: AbuseSeverity,
        details: Optional[dict[str, Any]] = None,
        device_fingerprint: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AbuseLog:
        """
        Append an entry. Does not commit; the caller owns the transaction.

        Storage errors propagate so the calling check fails closed.
        """
        entry = await self.repo.create(
            user_id=user_id,
            abuse_type=abuse_type.value,
            severity=severity.value,
            details=details or {},
            created_at=now or datetime.now(timezone.utc),
            device_fingerprint=device_fingerprint,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self.cache.invalidate_trust_score(user_id)

        logger.warning(
            "abuse_logged",
            user_id=user_id,
            abuse_type=abuse_type.value,
            severity=severity.value,
            device_fingerprint=device_fingerprint[:8] if device_fingerprint else None,
        )
        return entry

    async def count_since(self, user_id: str, abuse_type: AbuseType, since: datetime) -> int:
        return await self.repo.count_since(user_id, abuse_type.value, since)

    async def export(
        self,
        user_id: Optional[str] = None,
        abuse_type: Optional[AbuseType] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AbuseLog]:
        """Query entries for external review, newest first."""
        return await self.repo.search(
            user_id=user_id,
            abuse_type=abuse_type.value if abuse_type else None,
            since=since,
            until=until,
            limit=limit,
            offset=offset,
        )
