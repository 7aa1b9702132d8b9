"""
Device fingerprint repository for database operations.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.device_fingerprint import DeviceFingerprint


class DeviceRepository:
    """Repository for device fingerprint database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def get(self, user_id: str, fingerprint_hash: str) -> Optional[DeviceFingerprint]:
        """Get the record for a (user, device) pair."""
        result = await self.db.execute(
            select(DeviceFingerprint).where(
                DeviceFingerprint.user_id == user_id,
                DeviceFingerprint.fingerprint_hash == fingerprint_hash,
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        user_id: str,
        fingerprint_hash: str,
        characteristics: dict[str, Any],
        seen_at: datetime,
    ) -> Optional[DeviceFingerprint]:
        """
        Insert a new trusted-by-default device record.

        Returns None if a concurrent request created the same pair first.
        """
        device = DeviceFingerprint(
            user_id=user_id,
            fingerprint_hash=fingerprint_hash,
            characteristics=characteristics,
            trust_score=100,
            is_trusted=True,
            flagged=False,
            first_seen_at=seen_at,
            last_seen_at=seen_at,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(device)
                await self.db.flush()
        except IntegrityError:
            return None
        return device

    async def touch(self, device_id: str, seen_at: datetime, characteristics: dict[str, Any]) -> bool:
        """Record a later sighting of a known device."""
        result = await self.db.execute(
            update(DeviceFingerprint)
            .where(DeviceFingerprint.id == device_id)
            .values(last_seen_at=seen_at, characteristics=characteristics)
        )
        return self._get_rowcount(result) > 0

    async def other_owners(self, fingerprint_hash: str, user_id: str) -> list[str]:
        """User ids other than `user_id` that registered this fingerprint."""
        result = await self.db.execute(
            select(DeviceFingerprint.user_id)
            .where(
                DeviceFingerprint.fingerprint_hash == fingerprint_hash,
                DeviceFingerprint.user_id != user_id,
            )
            .distinct()
        )
        return list(result.scalars().all())

    async def most_recent_trusted(self, user_id: str) -> Optional[DeviceFingerprint]:
        """The user's most recently seen trusted device, if any."""
        result = await self.db.execute(
            select(DeviceFingerprint)
            .where(DeviceFingerprint.user_id == user_id, DeviceFingerprint.is_trusted.is_(True))
            .order_by(DeviceFingerprint.last_seen_at.desc())
            .limit(1)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, user_id: str, fingerprint_hash: str) -> Optional[DeviceFingerprint]:
        """Get a (user, device) record with a row lock for a trust adjustment."""
        result = await self.db.execute(
            select(DeviceFingerprint)
            .where(
                DeviceFingerprint.user_id == user_id,
                DeviceFingerprint.fingerprint_hash == fingerprint_hash,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def apply_trust(
        self,
        device: DeviceFingerprint,
        trust_score: int,
        is_trusted: bool,
        flag_reason: Optional[str] = None,
    ) -> DeviceFingerprint:
        """
        Store a new trust score on a locked device row.

        When flag_reason is given the device is also flagged. A flag is
        never cleared here.
        """
        device.trust_score = trust_score
        device.is_trusted = is_trusted and not device.flagged
        if flag_reason is not None:
            device.flagged = True
            device.is_trusted = False
            device.flag_reason = flag_reason
        await self.db.flush()
        return device

    async def set_flag(
        self,
        fingerprint_hash: str,
        flagged: bool,
        reason: Optional[str] = None,
        trusted_min_score: int = 30,
    ) -> int:
        """Flag or unflag every record carrying this fingerprint."""
        if flagged:
            values: dict[str, Any] = {"flagged": True, "flag_reason": reason, "is_trusted": False}
        else:
            values = {
                "flagged": False,
                "flag_reason": None,
                "is_trusted": DeviceFingerprint.trust_score >= trusted_min_score,
            }
        result = await self.db.execute(
            update(DeviceFingerprint).where(DeviceFingerprint.fingerprint_hash == fingerprint_hash).values(**values)
        )
        return self._get_rowcount(result)

    async def flag_all_for_user(
        self,
        user_id: str,
        reason: str,
        except_fingerprint: Optional[str] = None,
    ) -> int:
        """
        Flag and untrust a user's unflagged devices, optionally sparing one.

        Rows that are already flagged keep their original reason.
        """
        query = update(DeviceFingerprint).where(
            DeviceFingerprint.user_id == user_id,
            DeviceFingerprint.flagged.is_(False),
        )
        if except_fingerprint:
            query = query.where(DeviceFingerprint.fingerprint_hash != except_fingerprint)
        result = await self.db.execute(query.values(flagged=True, is_trusted=False, flag_reason=reason))
        return self._get_rowcount(result)

    async def unflag_all_with_reason(self, user_id: str, reason: str, trusted_min_score: int = 30) -> int:
        """Clear the flag on a user's devices flagged for `reason`."""
        result = await self.db.execute(
            update(DeviceFingerprint)
            .where(
                DeviceFingerprint.user_id == user_id,
                DeviceFingerprint.flagged.is_(True),
                DeviceFingerprint.flag_reason == reason,
            )
            .values(
                flagged=False,
                flag_reason=None,
                is_trusted=DeviceFingerprint.trust_score >= trusted_min_score,
            )
        )
        return self._get_rowcount(result)
