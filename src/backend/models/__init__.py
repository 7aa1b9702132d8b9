"""Database models module."""

from models.abuse_log import AbuseLog, AbuseSeverity, AbuseType
from models.account_activity import AccountActivityLog, ActivityStatus, ActivityType
from models.checkin import CheckinClaim, CheckinStatus, PromotionCheckin, RewardType
from models.device_fingerprint import DeviceFingerprint
from models.trust_profile import UserTrustProfile
from models.user_action import ActionWindowGuard, UserAction

__all__ = [
    "AbuseLog",
    "AbuseSeverity",
    "AbuseType",
    "AccountActivityLog",
    "ActivityStatus",
    "ActivityType",
    "CheckinClaim",
    "CheckinStatus",
    "PromotionCheckin",
    "RewardType",
    "DeviceFingerprint",
    "UserTrustProfile",
    "ActionWindowGuard",
    "UserAction",
]
