"""
Geofenced Check-In Verifier.

Verifies that a user is physically near a promotion location, enforces one
check-in per (user, promotion) per 24 hours, maintains the daily activity
streak and credits the streak-boosted reward through the ledger.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InputValidationError
from models.abuse_log import AbuseSeverity, AbuseType
from models.checkin import CheckinStatus, RewardType
from repositories.checkin_repository import CheckinRepository
from repositories.trust_profile_repository import TrustProfileRepository
from schemas.checkin import CheckinResult, RewardInfo, StreakInfo
from schemas.common import CheckOutcome
from services.abuse_log_service import AbuseLogService
from services.ledger_client import LedgerClient, ledger_client
from services.notification_service import NotificationService, NotificationType, notification_service
from services.policy import TrustConfig

logger = structlog.get_logger(__name__)


# =============================================================================
# Geometry & streak rules
# =============================================================================


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return TrustConfig.EARTH_RADIUS_METERS * c


def compute_streak(
    previous_streak: int,
    longest_streak: int,
    last_active_date: Optional[date],
    today: date,
) -> tuple[int, int]:
    """
    Next (streak, longest) for an activity today.

    Yesterday extends the streak by one, today keeps it, anything else
    starts over at 1.
    """
    if last_active_date == today - timedelta(days=1):
        streak = previous_streak + 1
    elif last_active_date == today:
        streak = previous_streak or 1
    else:
        streak = 1
    return streak, max(longest_streak, streak)


def streak_bonus_percent(streak_days: int) -> int:
    """Bonus percent for the largest streak threshold reached."""
    percent = 0
    for threshold, bonus in sorted(TrustConfig.STREAK_BONUSES.items()):
        if streak_days >= threshold:
            percent = bonus
    return percent


def _validate_coordinate(value: Optional[float], limit: float, field: str) -> float:
    if value is None:
        raise InputValidationError(f"{field} is required", field=field)
    if not isinstance(value, (int, float)) or math.isnan(value) or not -limit <= value <= limit:
        raise InputValidationError(f"{field} must be between -{limit} and {limit}", field=field)
    return float(value)


# =============================================================================
# Verifier
# =============================================================================


class CheckinVerifier:
    """Verifies check-ins and pays out streak-boosted rewards."""

    def __init__(
        self,
        db: AsyncSession,
        abuse_log: Optional[AbuseLogService] = None,
        ledger: Optional[LedgerClient] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.checkins = CheckinRepository(db)
        self.profiles = TrustProfileRepository(db)
        self.abuse_log = abuse_log or AbuseLogService(db)
        self.ledger = ledger or ledger_client
        self.notifier = notifier or notification_service
        self.cooldown = timedelta(hours=TrustConfig.CHECKIN_COOLDOWN_HOURS)

    async def verify(
        self,
        user_id: str,
        promotion_id: str,
        target_lat: Optional[float],
        target_lng: Optional[float],
        user_lat: Optional[float],
        user_lng: Optional[float],
        reward_amount: int = 0,
        reward_type: str = RewardType.VICOIN.value,
        max_distance_meters: Optional[int] = None,
        business_name: Optional[str] = None,
    ) -> CheckinResult:
        """
        Verify a check-in attempt.

        Raises:
            InputValidationError: bad coordinates or reward parameters. Nothing
                is written in that case.
        """
        target_lat = _validate_coordinate(target_lat, 90, "target_latitude")
        target_lng = _validate_coordinate(target_lng, 180, "target_longitude")
        user_lat = _validate_coordinate(user_lat, 90, "user_latitude")
        user_lng = _validate_coordinate(user_lng, 180, "user_longitude")
        if not promotion_id:
            raise InputValidationError("promotion_id is required", field="promotion_id")
        if max_distance_meters is None:
            max_distance_meters = TrustConfig.DEFAULT_MAX_DISTANCE_METERS
        if not TrustConfig.MIN_MAX_DISTANCE_METERS <= max_distance_meters <= TrustConfig.MAX_MAX_DISTANCE_METERS:
            raise InputValidationError(
                f"max_distance_meters must be between {TrustConfig.MIN_MAX_DISTANCE_METERS} "
                f"and {TrustConfig.MAX_MAX_DISTANCE_METERS}",
                field="max_distance_meters",
            )
        if not 0 <= reward_amount <= TrustConfig.MAX_REWARD_AMOUNT:
            raise InputValidationError(
                f"reward_amount must be between 0 and {TrustConfig.MAX_REWARD_AMOUNT}", field="reward_amount"
            )
        if reward_type not in {t.value for t in RewardType}:
            raise InputValidationError(f"Unknown reward type: {reward_type}", field="reward_type")

        distance = haversine_distance(user_lat, user_lng, target_lat, target_lng)
        verified = distance <= max_distance_meters
        now = datetime.now(timezone.utc)
        today = now.date()

        try:
            if not await self.checkins.claim(user_id, promotion_id, now, self.cooldown):
                last_checkin_at = await self.checkins.last_checkin_at(user_id, promotion_id)
                await self.db.rollback()
                logger.info("checkin_already_claimed", user_id=user_id, promotion_id=promotion_id)
                return CheckinResult(
                    outcome=CheckOutcome.DENIED,
                    verified=False,
                    reason="already_checked_in",
                    message="Already checked in at this location today",
                    last_checkin_at=last_checkin_at,
                )

            profile = await self.profiles.get_for_update(user_id)
            streak, longest = compute_streak(
                profile.streak_days, profile.longest_streak, profile.last_active_date, today
            )
            bonus_percent = streak_bonus_percent(streak)
            bonus_amount = math.floor(reward_amount * bonus_percent / 100)
            total_reward = reward_amount + bonus_amount

            checkin = await self.checkins.create(
                user_id=user_id,
                promotion_id=promotion_id,
                business_name=business_name or "Unknown Business",
                target_latitude=target_lat,
                target_longitude=target_lng,
                user_latitude=user_lat,
                user_longitude=user_lng,
                distance_meters=distance,
                status=CheckinStatus.VERIFIED.value if verified else CheckinStatus.FAILED.value,
                reward_amount=total_reward if verified else None,
                reward_type=reward_type if verified else None,
                streak_day=streak,
                streak_bonus=bonus_amount if verified else 0,
                reward_claimed=False,
                checked_in_at=now,
            )

            if verified:
                await self.profiles.update_streak(profile, streak, longest, today)
            else:
                await self.abuse_log.log(
                    user_id=user_id,
                    abuse_type=AbuseType.GEO_MISMATCH,
                    severity=AbuseSeverity.LOW,
                    details={
                        "promotion_id": promotion_id,
                        "distance_meters": round(distance),
                        "max_distance_meters": max_distance_meters,
                    },
                    now=now,
                )

            checkin_id = checkin.id
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("checkin_failed", user_id=user_id, promotion_id=promotion_id, error=str(e))
            return CheckinResult(
                outcome=CheckOutcome.INDETERMINATE,
                verified=False,
                reason="store_unavailable",
                message="Check-in could not be processed. Please try again.",
            )

        distance_rounded = round(distance)

        if not verified:
            logger.info(
                "checkin_out_of_range",
                user_id=user_id,
                promotion_id=promotion_id,
                distance=distance_rounded,
                max_distance=max_distance_meters,
            )
            return CheckinResult(
                outcome=CheckOutcome.DENIED,
                verified=False,
                status=CheckinStatus.FAILED.value,
                reason="out_of_range",
                message=f"Too far from location. You are {distance_rounded}m away (max {max_distance_meters}m)",
                checkin_id=checkin_id,
                distance_meters=distance_rounded,
                max_distance_meters=max_distance_meters,
                remaining_distance_meters=max(0, math.ceil(distance - max_distance_meters)),
                streak=StreakInfo(
                    current=profile.streak_days,
                    longest=profile.longest_streak,
                    bonus_percent=0,
                    bonus_amount=0,
                ),
            )

        reward_claimed = await self._credit_reward(user_id, checkin_id, reward_type, total_reward)

        logger.info(
            "checkin_verified",
            user_id=user_id,
            promotion_id=promotion_id,
            distance=distance_rounded,
            streak=streak,
            total_reward=total_reward,
            reward_claimed=reward_claimed,
        )

        bonus_text = f" (+{bonus_amount} streak bonus!)" if bonus_amount > 0 else ""
        message = f"Check-in successful! You earned {total_reward} {reward_type}{bonus_text}!"
        if not reward_claimed and total_reward > 0:
            message = f"{message} Your reward is pending and will be credited shortly."

        await self.notifier.notify(
            user_id=user_id,
            title="Check-in verified",
            body=f"You checked in at {business_name or 'Unknown Business'} and earned {total_reward} {reward_type}.",
            data={"action": "checkin_verified", "checkin_id": checkin_id, "promotion_id": promotion_id},
            notification_type=NotificationType.REWARD,
        )

        return CheckinResult(
            outcome=CheckOutcome.ALLOWED,
            verified=True,
            status=CheckinStatus.VERIFIED.value,
            message=message,
            checkin_id=checkin_id,
            distance_meters=distance_rounded,
            max_distance_meters=max_distance_meters,
            remaining_distance_meters=0,
            streak=StreakInfo(current=streak, longest=longest, bonus_percent=bonus_percent, bonus_amount=bonus_amount),
            reward=RewardInfo(base=reward_amount, bonus=bonus_amount, total=total_reward, type=reward_type),
            reward_claimed=reward_claimed,
        )

    async def _credit_reward(self, user_id: str, checkin_id: str, reward_type: str, amount: int) -> bool:
        """
        Credit the ledger, then mark the record claimed.

        Fails closed: if either step fails the record stays unclaimed.
        """
        if amount <= 0:
            return False

        if not await self.ledger.credit(user_id, reward_type, amount, reference_id=f"checkin:{checkin_id}"):
            return False

        try:
            await self.checkins.mark_reward_claimed(checkin_id, datetime.now(timezone.utc))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("checkin_claim_mark_failed", user_id=user_id, checkin_id=checkin_id, error=str(e))
            return False
        return True
