"""Schemas module initialization."""

from schemas.abuse import AbuseLogEntry, AbuseLogPage
from schemas.checkin import CheckinRequest, CheckinResult, RewardInfo, StreakInfo
from schemas.common import CheckOutcome
from schemas.device import DeviceCharacteristics, DeviceRegistrationResult, DuplicateDeviceResult
from schemas.rate_limit import ActionCheckRequest, RateLimitResult
from schemas.reward import RewardAttemptRequest, RewardAttemptResult
from schemas.session import SessionCheckResult, SuspiciousReportResult
from schemas.trust import AccountState, TrustSummary

__all__ = [
    "AbuseLogEntry",
    "AbuseLogPage",
    "CheckinRequest",
    "CheckinResult",
    "RewardInfo",
    "StreakInfo",
    "CheckOutcome",
    "DeviceCharacteristics",
    "DeviceRegistrationResult",
    "DuplicateDeviceResult",
    "ActionCheckRequest",
    "RateLimitResult",
    "RewardAttemptRequest",
    "RewardAttemptResult",
    "SessionCheckResult",
    "SuspiciousReportResult",
    "AccountState",
    "TrustSummary",
]
