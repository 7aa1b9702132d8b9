"""
Device Fingerprint Registry.

Tracks which devices each user signs in from, detects one device shared by
several accounts, and holds a per-device trust score that other components
lower when a device misbehaves.

Device lifecycle: New -> Trusted -> Flagged. Flagging is one-way for the
engine; only the manual review path calls unflag().
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import InputValidationError, StoreUnavailableError
from models.abuse_log import AbuseSeverity, AbuseType
from models.account_activity import ActivityStatus, ActivityType
from models.device_fingerprint import DeviceFingerprint
from repositories.activity_repository import ActivityRepository
from repositories.device_repository import DeviceRepository
from schemas.common import CheckOutcome
from schemas.device import (
    DeviceCharacteristics,
    DeviceFlagResult,
    DeviceRegistrationResult,
    DeviceTrustResult,
    DuplicateDeviceResult,
)
from services.abuse_log_service import AbuseLogService
from services.policy import TrustConfig

logger = structlog.get_logger(__name__)


def compute_fingerprint_hash(characteristics: DeviceCharacteristics, salt: Optional[str] = None) -> str:
    """Deterministic fingerprint hash for a characteristic vector."""
    return characteristics.compute_fingerprint_hash(salt or settings.fingerprint_salt)


class DeviceFingerprintService:
    """Registration, duplicate detection and trust bookkeeping for devices."""

    def __init__(self, db: AsyncSession, abuse_log: Optional[AbuseLogService] = None):
        self.db = db
        self.repo = DeviceRepository(db)
        self.activity = ActivityRepository(db)
        self.abuse_log = abuse_log or AbuseLogService(db)

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(self, user_id: str, characteristics: DeviceCharacteristics) -> DeviceRegistrationResult:
        """
        Register a sighting of a device for a user.

        First sighting creates a trusted record with score 100; later
        sightings refresh last_seen_at and return the stored trust state.
        """
        fingerprint_hash = compute_fingerprint_hash(characteristics)
        now = datetime.now(timezone.utc)
        snapshot = characteristics.snapshot()

        try:
            device = await self.repo.get(user_id, fingerprint_hash)
            is_new = False
            if device is None:
                device = await self.repo.create(user_id, fingerprint_hash, snapshot, now)
                is_new = device is not None
                if device is None:
                    # Lost a concurrent first registration
                    device = await self.repo.get(user_id, fingerprint_hash)
            if device is None:
                raise StoreUnavailableError("device record vanished during registration")
            if not is_new:
                await self.repo.touch(device.id, now, snapshot)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("device_registration_failed", user_id=user_id, error=str(e))
            raise StoreUnavailableError("device registry unavailable") from e

        if is_new:
            logger.info("device_registered", user_id=user_id, fingerprint=fingerprint_hash[:8])

        return DeviceRegistrationResult(
            outcome=CheckOutcome.DENIED if device.flagged else CheckOutcome.ALLOWED,
            fingerprint_hash=fingerprint_hash,
            is_new_device=is_new,
            is_trusted=device.is_trusted,
            flagged=device.flagged,
        )

    async def check_duplicate(self, user_id: str, characteristics: DeviceCharacteristics) -> DuplicateDeviceResult:
        """
        Check whether other accounts use the same device.

        A hit logs one duplicate_device (high) entry for the calling user.
        """
        fingerprint_hash = compute_fingerprint_hash(characteristics)

        try:
            other_users = await self.repo.other_owners(fingerprint_hash, user_id)
            if other_users:
                await self.abuse_log.log(
                    user_id=user_id,
                    abuse_type=AbuseType.DUPLICATE_DEVICE,
                    severity=AbuseSeverity.HIGH,
                    details={"other_users": other_users, "fingerprint": fingerprint_hash},
                    device_fingerprint=fingerprint_hash,
                )
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("duplicate_device_check_failed", user_id=user_id, error=str(e))
            return DuplicateDeviceResult(
                outcome=CheckOutcome.INDETERMINATE,
                fingerprint_hash=fingerprint_hash,
                is_duplicate=False,
            )

        return DuplicateDeviceResult(
            outcome=CheckOutcome.DENIED if other_users else CheckOutcome.ALLOWED,
            fingerprint_hash=fingerprint_hash,
            is_duplicate=bool(other_users),
            other_user_count=len(other_users),
        )

    # =========================================================================
    # Flagging (manual review)
    # =========================================================================

    async def flag(self, fingerprint_hash: str, reason: str) -> DeviceFlagResult:
        """Flag every record with this fingerprint, across users."""
        updated = await self._set_flag(fingerprint_hash, True, reason)
        logger.warning("device_flagged", fingerprint=fingerprint_hash[:8], reason=reason, devices=updated)
        return DeviceFlagResult(fingerprint_hash=fingerprint_hash, flagged=True, devices_updated=updated)

    async def unflag(self, fingerprint_hash: str) -> DeviceFlagResult:
        """Clear a flag after review. Trust follows the stored score."""
        updated = await self._set_flag(fingerprint_hash, False)
        logger.info("device_unflagged", fingerprint=fingerprint_hash[:8], devices=updated)
        return DeviceFlagResult(fingerprint_hash=fingerprint_hash, flagged=False, devices_updated=updated)

    async def _set_flag(self, fingerprint_hash: str, flagged: bool, reason: Optional[str] = None) -> int:
        try:
            updated = await self.repo.set_flag(
                fingerprint_hash,
                flagged,
                reason,
                trusted_min_score=TrustConfig.DEVICE_TRUSTED_MIN_SCORE,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("device_flag_update_failed", fingerprint=fingerprint_hash[:8], error=str(e))
            raise StoreUnavailableError("device registry unavailable") from e
        return updated

    # =========================================================================
    # Trust adjustments
    # =========================================================================

    async def penalize(
        self,
        user_id: str,
        fingerprint_hash: Optional[str],
        penalty: int,
        flag_below: Optional[int] = None,
        flag_reason: Optional[str] = None,
    ) -> Optional[DeviceFingerprint]:
        """
        Lower a device's trust score, floored at 0.

        Without a fingerprint, or with one the user never registered, the
        user's most recently seen trusted device takes the penalty. Does not
        commit; the caller owns the transaction.
        """
        device = None
        if fingerprint_hash:
            device = await self.repo.get_for_update(user_id, fingerprint_hash)
        if device is None:
            device = await self.repo.most_recent_trusted(user_id)
        if device is None:
            return None

        new_score = max(0, device.trust_score - penalty)
        should_flag = flag_below is not None and new_score < flag_below and not device.flagged
        await self.repo.apply_trust(
            device,
            trust_score=new_score,
            is_trusted=new_score >= TrustConfig.DEVICE_TRUSTED_MIN_SCORE,
            flag_reason=(flag_reason or "Low trust score") if should_flag else None,
        )
        logger.info(
            "device_trust_lowered",
            user_id=user_id,
            fingerprint=device.fingerprint_hash[:8],
            penalty=penalty,
            trust_score=new_score,
            flagged=device.flagged,
        )
        return device

    async def apply_trust_event(self, user_id: str, fingerprint_hash: str, event: str) -> Optional[DeviceTrustResult]:
        """
        Adjust device trust by a known event's fixed factor.

        Returns None if the user has no such device.
        """
        delta = TrustConfig.DEVICE_TRUST_EVENTS.get(event)
        if delta is None:
            raise InputValidationError(f"Unknown trust event: {event}", field="event")

        try:
            device = await self.repo.get_for_update(user_id, fingerprint_hash)
            if device is None:
                return None

            previous = device.trust_score
            new_score = max(0, min(TrustConfig.MAX_TRUST_SCORE, previous + delta))
            should_flag = new_score < TrustConfig.DEVICE_FLAG_BELOW and not device.flagged
            await self.repo.apply_trust(
                device,
                trust_score=new_score,
                is_trusted=new_score >= TrustConfig.DEVICE_TRUSTED_MIN_SCORE,
                flag_reason="Low trust score" if should_flag else None,
            )
            await self.activity.create(
                user_id=user_id,
                activity_type=ActivityType.DEVICE_TRUST_UPDATE.value,
                status=ActivityStatus.SUCCESS.value,
                created_at=datetime.now(timezone.utc),
                device_fingerprint=fingerprint_hash,
                details={"event": event, "delta": delta, "previous_score": previous, "new_score": new_score},
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("device_trust_event_failed", user_id=user_id, event=event, error=str(e))
            raise StoreUnavailableError("device registry unavailable") from e

        logger.info(
            "device_trust_event_applied",
            user_id=user_id,
            fingerprint=fingerprint_hash[:8],
            trust_event=event,
            trust_score=new_score,
        )
        return DeviceTrustResult(
            fingerprint_hash=fingerprint_hash,
            trust_score=device.trust_score,
            is_trusted=device.is_trusted,
            flagged=device.flagged,
        )

    async def invalidate_devices(self, user_id: str, reason: str, keep_fingerprint: Optional[str] = None) -> int:
        """
        Flag and untrust all of a user's devices except the kept one.

        Does not commit; the caller owns the transaction.
        """
        count = await self.repo.flag_all_for_user(user_id, reason, except_fingerprint=keep_fingerprint)
        logger.warning("devices_invalidated", user_id=user_id, reason=reason, devices=count)
        return count

    async def release_devices(self, user_id: str, reason: str) -> int:
        """
        Clear the flag on the user's devices flagged for `reason`.

        Does not commit; the caller owns the transaction.
        """
        count = await self.repo.unflag_all_with_reason(
            user_id, reason, trusted_min_score=TrustConfig.DEVICE_TRUSTED_MIN_SCORE
        )
        logger.info("devices_released", user_id=user_id, reason=reason, devices=count)
        return count
