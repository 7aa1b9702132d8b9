"""
Session Security Enforcer.

Decides whether a session may continue, records login attempts, forces
logouts and escalates repeated suspicious activity into an account lock.

Account states: Normal -> Throttled (trust < 50) -> Locked (3+ suspicious
reports in 24h). The lock is stored on the trust profile and is only left
through an admin unlock.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import StoreUnavailableError
from models.abuse_log import AbuseSeverity, AbuseType
from models.account_activity import ActivityStatus, ActivityType
from repositories.activity_repository import ActivityRepository
from repositories.device_repository import DeviceRepository
from repositories.trust_profile_repository import TrustProfileRepository
from schemas.common import CheckOutcome
from schemas.session import (
    AccountUnlockResult,
    ForceLogoutResult,
    LoginAttemptResult,
    SessionCheckResult,
    SuspiciousReportResult,
)
from services.abuse_log_service import AbuseLogService
from services.device_fingerprint_service import DeviceFingerprintService
from services.notification_service import NotificationService, notification_service
from services.policy import TrustConfig
from services.trust_score_service import TrustScoreService

logger = structlog.get_logger(__name__)


class SessionSecurityService:
    """Session validation and account lockdown."""

    def __init__(
        self,
        db: AsyncSession,
        abuse_log: Optional[AbuseLogService] = None,
        devices: Optional[DeviceFingerprintService] = None,
        trust: Optional[TrustScoreService] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.device_repo = DeviceRepository(db)
        self.activity = ActivityRepository(db)
        self.profiles = TrustProfileRepository(db)
        self.abuse_log = abuse_log or AbuseLogService(db)
        self.devices = devices or DeviceFingerprintService(db, abuse_log=self.abuse_log)
        self.trust = trust or TrustScoreService(db, cache=self.abuse_log.cache)
        self.notifier = notifier or notification_service

    async def check_session(self, user_id: str, device_fingerprint: str) -> SessionCheckResult:
        """
        Validate a session for a device.

        A locked account, a flagged device or too many recent failed logins
        deny the session.
        An unreachable store yields an indeterminate result, never a lockout.
        """
        now = datetime.now(timezone.utc)

        try:
            profile = await self.profiles.get(user_id)
            if profile is not None and profile.locked_at is not None:
                await self._record_denial(user_id, device_fingerprint, "account_locked", now)
                await self.db.commit()
                logger.warning("session_denied_account_locked", user_id=user_id)
                return SessionCheckResult(
                    outcome=CheckOutcome.DENIED,
                    valid=False,
                    reason="account_locked",
                    details=profile.lock_reason,
                    require_reauth=True,
                )

            device = await self.device_repo.get(user_id, device_fingerprint)

            if device is not None and device.flagged:
                await self._record_denial(user_id, device_fingerprint, "device_flagged", now)
                await self.db.commit()
                logger.warning("session_denied_flagged_device", user_id=user_id, fingerprint=device_fingerprint[:8])
                return SessionCheckResult(
                    outcome=CheckOutcome.DENIED,
                    valid=False,
                    reason="device_flagged",
                    details=device.flag_reason,
                    require_reauth=True,
                )

            since = now - timedelta(minutes=TrustConfig.FAILED_LOGIN_WINDOW_MINUTES)
            failed_logins = await self.activity.count_since(
                user_id, ActivityType.LOGIN.value, ActivityStatus.FAILED.value, since
            )
            if failed_logins >= TrustConfig.FAILED_LOGIN_THRESHOLD:
                await self._record_denial(user_id, device_fingerprint, "too_many_failed_logins", now)
                await self.db.commit()
                logger.warning("session_denied_failed_logins", user_id=user_id, failed_logins=failed_logins)
                return SessionCheckResult(
                    outcome=CheckOutcome.DENIED,
                    valid=False,
                    reason="too_many_failed_logins",
                    details="Suspicious activity detected",
                    require_reauth=True,
                    lockout_minutes=TrustConfig.LOCKOUT_MINUTES,
                )

            trust_score = await self.trust.trust_score(user_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("session_check_failed", user_id=user_id, error=str(e))
            return SessionCheckResult(outcome=CheckOutcome.INDETERMINATE, valid=None, reason="store_unavailable")

        return SessionCheckResult(
            outcome=CheckOutcome.ALLOWED,
            valid=True,
            trust_score=trust_score,
        )

    async def _record_denial(self, user_id: str, device_fingerprint: str, reason: str, now: datetime) -> None:
        # Session denials are consequences of already-logged events, so they
        # go to the activity log and do not lower the trust score again.
        await self.activity.create(
            user_id=user_id,
            activity_type=ActivityType.SESSION_DENIED.value,
            status=ActivityStatus.FAILED.value,
            created_at=now,
            device_fingerprint=device_fingerprint,
            details={"reason": reason},
        )

    async def record_login_attempt(
        self,
        user_id: str,
        success: bool,
        device_fingerprint: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginAttemptResult:
        """Record a login attempt reported by the authentication service."""
        now = datetime.now(timezone.utc)
        try:
            await self.activity.create(
                user_id=user_id,
                activity_type=ActivityType.LOGIN.value,
                status=ActivityStatus.SUCCESS.value if success else ActivityStatus.FAILED.value,
                created_at=now,
                device_fingerprint=device_fingerprint,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            failed = await self.activity.count_since(
                user_id,
                ActivityType.LOGIN.value,
                ActivityStatus.FAILED.value,
                now - timedelta(minutes=TrustConfig.FAILED_LOGIN_WINDOW_MINUTES),
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("login_attempt_record_failed", user_id=user_id, error=str(e))
            raise StoreUnavailableError("activity log unavailable") from e

        if not success:
            logger.info("login_failed_recorded", user_id=user_id, failed_logins_last_hour=failed)
        return LoginAttemptResult(recorded=True, failed_logins_last_hour=failed)

    async def force_logout(
        self,
        user_id: str,
        keep_device: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ForceLogoutResult:
        """Invalidate every device of the user except `keep_device`."""
        now = datetime.now(timezone.utc)
        try:
            count = await self.devices.invalidate_devices(
                user_id, TrustConfig.FORCED_LOGOUT_REASON, keep_fingerprint=keep_device
            )
            await self.activity.create(
                user_id=user_id,
                activity_type=ActivityType.FORCED_LOGOUT.value,
                status=ActivityStatus.SUCCESS.value,
                created_at=now,
                device_fingerprint=keep_device,
                details={"reason": reason or "user_initiated", "devices_invalidated": count},
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("force_logout_failed", user_id=user_id, error=str(e))
            raise StoreUnavailableError("device registry unavailable") from e

        await self.notifier.notify(
            user_id=user_id,
            title="Security Alert",
            body=(
                "You have been logged out of all devices due to suspicious activity. "
                "Please review your account security."
            ),
            data={"action": "force_logout", "timestamp": now.isoformat()},
        )
        logger.warning("forced_logout", user_id=user_id, devices_invalidated=count)
        return ForceLogoutResult(devices_invalidated=count)

    async def report_suspicious(
        self,
        user_id: str,
        device_fingerprint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> SuspiciousReportResult:
        """
        Record suspicious activity and lock the account on repetition.

        The device loses 25 trust points and is flagged below 20. Reaching
        the lock threshold within 24 hours locks the trust profile and flags
        every unflagged device of the user.
        """
        now = datetime.now(timezone.utc)
        account_locked = False

        try:
            await self.abuse_log.log(
                user_id=user_id,
                abuse_type=AbuseType.SUSPICIOUS_ACTIVITY,
                severity=AbuseSeverity.HIGH,
                details=details or {},
                device_fingerprint=device_fingerprint,
                now=now,
            )
            if device_fingerprint:
                await self.devices.penalize(
                    user_id,
                    device_fingerprint,
                    TrustConfig.SUSPICIOUS_REPORT_DEVICE_PENALTY,
                    flag_below=TrustConfig.DEVICE_FLAG_BELOW,
                    flag_reason=TrustConfig.SUSPICIOUS_REPORT_REASON,
                )

            since = now - timedelta(hours=TrustConfig.ACCOUNT_LOCK_WINDOW_HOURS)
            suspicious_count = await self.abuse_log.count_since(user_id, AbuseType.SUSPICIOUS_ACTIVITY, since)

            if suspicious_count >= TrustConfig.ACCOUNT_LOCK_THRESHOLD:
                profile = await self.profiles.get_for_update(user_id)
                if profile.locked_at is None:
                    await self.profiles.set_lock(profile, now, TrustConfig.ACCOUNT_LOCK_REASON)
                count = await self.devices.invalidate_devices(user_id, TrustConfig.ACCOUNT_LOCK_REASON)
                await self.activity.create(
                    user_id=user_id,
                    activity_type=ActivityType.ACCOUNT_LOCKED.value,
                    status=ActivityStatus.SUCCESS.value,
                    created_at=now,
                    device_fingerprint=device_fingerprint,
                    details={"suspicious_count": suspicious_count, "devices_invalidated": count},
                )
                await self.activity.create(
                    user_id=user_id,
                    activity_type=ActivityType.FORCED_LOGOUT.value,
                    status=ActivityStatus.SUCCESS.value,
                    created_at=now,
                    device_fingerprint=device_fingerprint,
                    details={"reason": "account_lock", "devices_invalidated": count},
                )
                account_locked = True


            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("suspicious_report_failed", user_id=user_id, error=str(e))
            raise StoreUnavailableError("abuse log unavailable") from e

        if account_locked:
            logger.warning("account_locked", user_id=user_id, suspicious_count=suspicious_count)
            await self.notifier.notify(
                user_id=user_id,
                title="Account Security Lock",
                body=(
                    "Your account has been temporarily locked due to suspicious activity. "
                    "Please contact support."
                ),
                data={"action": "account_lock"},
            )

        return SuspiciousReportResult(account_locked=account_locked, suspicious_count=suspicious_count)

    async def unlock_account(self, user_id: str, reviewed_by: str) -> AccountUnlockResult:
        """
        Clear an account lock after manual review.

        Devices flagged by the lock are released; devices flagged for any
        other reason stay flagged.
        """
        now = datetime.now(timezone.utc)
        try:
            profile = await self.profiles.get_for_update(user_id)
            was_locked = profile.locked_at is not None
            released = 0
            if was_locked:
                await self.profiles.set_lock(profile, None)
                released = await self.devices.release_devices(user_id, TrustConfig.ACCOUNT_LOCK_REASON)
                await self.activity.create(
                    user_id=user_id,
                    activity_type=ActivityType.ACCOUNT_UNLOCKED.value,
                    status=ActivityStatus.SUCCESS.value,
                    created_at=now,
                    details={"reviewed_by": reviewed_by, "devices_released": released},
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("account_unlock_failed", user_id=user_id, error=str(e))
            raise StoreUnavailableError("trust profile unavailable") from e

        if was_locked:
            logger.info("account_unlocked", user_id=user_id, reviewed_by=reviewed_by, devices_released=released)
        return AccountUnlockResult(was_locked=was_locked, devices_released=released)
