"""
Rate Limiter & Duplicate-Action Detector.

Sliding-window limits per (user, action type), derived from the action log
at check time. Each check first locks the user's guard row for that action
type, so two concurrent checks cannot both see a free slot. An allowed
check records its action in the same transaction.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InputValidationError
from core.security import hash_content
from models.abuse_log import AbuseSeverity, AbuseType
from repositories.action_repository import ActionRepository
from schemas.common import CheckOutcome
from schemas.rate_limit import RateLimitResult, WindowState
from services.abuse_log_service import AbuseLogService
from services.device_fingerprint_service import DeviceFingerprintService
from services.policy import RateLimitPolicy, TrustConfig, get_rate_limit_policies

logger = structlog.get_logger(__name__)


class RateLimiterService:
    """Per-user, per-action sliding window limits with duplicate detection."""

    def __init__(
        self,
        db: AsyncSession,
        abuse_log: Optional[AbuseLogService] = None,
        devices: Optional[DeviceFingerprintService] = None,
        policies: Optional[dict[str, RateLimitPolicy]] = None,
    ):
        self.db = db
        self.repo = ActionRepository(db)
        self.abuse_log = abuse_log or AbuseLogService(db)
        self.devices = devices or DeviceFingerprintService(db, abuse_log=self.abuse_log)
        self.policies = policies if policies is not None else get_rate_limit_policies()

    def get_policy(self, action_type: str) -> RateLimitPolicy:
        policy = self.policies.get(action_type)
        if policy is None:
            raise InputValidationError(f"Unknown action type: {action_type}", field="action_type")
        return policy

    async def consume(
        self,
        user_id: str,
        action_type: str,
        content: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WindowState:
        """
        Evaluate the window and take a slot if the action is allowed.

        Does not commit and does not log; the caller decides what a denial
        costs and owns the transaction.
        """
        policy = self.get_policy(action_type)
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(minutes=policy.window_minutes)
        content_hash = hash_content(content) if content is not None else None

        await self.repo.lock_window(user_id, action_type, now)
        recent_count, oldest = await self.repo.window_stats(user_id, action_type, since)

        is_rate_limited = recent_count >= policy.max_count
        is_duplicate = False
        if content_hash is not None:
            is_duplicate = await self.repo.has_content(user_id, action_type, content_hash, since)

        retry_after = 0
        if is_rate_limited:
            if oldest is not None:
                remaining = (oldest + timedelta(minutes=policy.window_minutes) - now).total_seconds()
                retry_after = max(1, math.ceil(remaining))
            else:
                retry_after = policy.window_seconds

        state = WindowState(
            action_type=action_type,
            recent_count=recent_count,
            max_allowed=policy.max_count,
            window_minutes=policy.window_minutes,
            is_rate_limited=is_rate_limited,
            is_duplicate=is_duplicate,
            retry_after_seconds=retry_after,
        )
        if state.allowed:
            await self.repo.record(user_id, action_type, created_at=now, content_hash=content_hash)
        return state

    async def check(
        self,
        user_id: str,
        action_type: str,
        content: Optional[str] = None,
        device_fingerprint: Optional[str] = None,
    ) -> RateLimitResult:
        """
        Check and consume one action.

        A denial logs one abuse entry (rate_limit_exceeded/medium, or
        duplicate_content/low when only the payload repeats) and costs the
        triggering device 5 trust points.
        """
        policy = self.get_policy(action_type)

        try:
            state = await self.consume(user_id, action_type, content=content)
            if not state.allowed:
                await self._record_denial(user_id, state, device_fingerprint)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("rate_limit_check_failed", user_id=user_id, action_type=action_type, error=str(e))
            return RateLimitResult(
                outcome=CheckOutcome.INDETERMINATE,
                allowed=False,
                max_allowed=policy.max_count,
                window_minutes=policy.window_minutes,
            )

        if not state.allowed:
            logger.info(
                "rate_limit_denied",
                user_id=user_id,
                action_type=action_type,
                recent_count=state.recent_count,
                is_duplicate=state.is_duplicate,
            )

        return RateLimitResult(
            outcome=CheckOutcome.ALLOWED if state.allowed else CheckOutcome.DENIED,
            allowed=state.allowed,
            is_rate_limited=state.is_rate_limited,
            is_duplicate=state.is_duplicate,
            recent_count=state.recent_count,
            max_allowed=state.max_allowed,
            window_minutes=state.window_minutes,
            retry_after_seconds=state.retry_after_seconds,
        )

    async def _record_denial(self, user_id: str, state: WindowState, device_fingerprint: Optional[str]) -> None:
        # A repeated payload is logged as duplicate content even past the limit
        if state.is_duplicate:
            abuse_type, severity = AbuseType.DUPLICATE_CONTENT, AbuseSeverity.LOW
        else:
            abuse_type, severity = AbuseType.RATE_LIMIT_EXCEEDED, AbuseSeverity.MEDIUM

        await self.abuse_log.log(
            user_id=user_id,
            abuse_type=abuse_type,
            severity=severity,
            details={
                "action_type": state.action_type,
                "recent_count": state.recent_count,
                "max_allowed": state.max_allowed,
                "window_minutes": state.window_minutes,
                "is_duplicate": state.is_duplicate,
            },
            device_fingerprint=device_fingerprint,
        )
        await self.devices.penalize(user_id, device_fingerprint, TrustConfig.RATE_LIMIT_DEVICE_PENALTY)
