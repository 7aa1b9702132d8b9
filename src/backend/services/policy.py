"""
Trust and abuse policy constants.

Every threshold the engine enforces lives here so that tuning does not
require touching service logic. Rate-limit policies can additionally be
overridden per deployment through RATE_LIMIT_OVERRIDES.
"""

from pydantic import BaseModel, Field

from core.config import settings
from models.abuse_log import AbuseSeverity


class RateLimitPolicy(BaseModel):
    """Maximum number of actions allowed within a trailing window."""

    max_count: int = Field(..., ge=1)
    window_minutes: int = Field(..., ge=1)

    @property
    def window_seconds(self) -> int:
        return self.window_minutes * 60


DEFAULT_RATE_LIMITS: dict[str, RateLimitPolicy] = {
    "comment": RateLimitPolicy(max_count=5, window_minutes=1),
    "like": RateLimitPolicy(max_count=50, window_minutes=1),
    "message": RateLimitPolicy(max_count=30, window_minutes=1),
    "follow": RateLimitPolicy(max_count=30, window_minutes=5),
    "tip": RateLimitPolicy(max_count=20, window_minutes=5),
    "report": RateLimitPolicy(max_count=5, window_minutes=10),
    "reward_claim": RateLimitPolicy(max_count=5, window_minutes=1),
}


def get_rate_limit_policies() -> dict[str, RateLimitPolicy]:
    """Built-in policies merged with deployment overrides."""
    policies = dict(DEFAULT_RATE_LIMITS)
    for action_type, override in settings.rate_limit_overrides.items():
        policies[action_type] = RateLimitPolicy(**override)
    return policies


class TrustConfig:
    """Trust scoring and enforcement configuration."""

    # Trust score
    MAX_TRUST_SCORE = 100
    SEVERITY_PENALTIES: dict[str, int] = {
        AbuseSeverity.LOW.value: 5,
        AbuseSeverity.MEDIUM.value: 15,
        AbuseSeverity.HIGH.value: 30,
        AbuseSeverity.CRITICAL.value: 50,
    }
    THROTTLE_BELOW = 50

    # (minimum score, multiplier), highest tier first
    REWARD_MULTIPLIER_TIERS: list[tuple[int, float]] = [
        (90, 1.0),
        (70, 0.9),
        (50, 0.7),
    ]
    MIN_REWARD_MULTIPLIER = 0.5

    # Device trust
    DEVICE_TRUSTED_MIN_SCORE = 30
    DEVICE_FLAG_BELOW = 20
    RATE_LIMIT_DEVICE_PENALTY = 5
    SUSPICIOUS_REPORT_DEVICE_PENALTY = 25
    DEVICE_TRUST_EVENTS: dict[str, int] = {
        "successful_login": 2,
        "completed_purchase": 5,
        "verified_email": 10,
        "completed_kyc": 20,
        "long_session": 1,
        "consistent_location": 3,
        "failed_login": -5,
        "suspicious_activity": -15,
        "spam_detected": -10,
        "rate_limit_exceeded": -5,
        "unusual_location": -10,
        "rapid_account_changes": -8,
        "multiple_devices_short_time": -12,
    }

    # Reward attempt scoring
    REWARD_CLAIM_ACTION = "reward_claim"
    RATE_LIMIT_PENALTY = 50
    LOW_ATTENTION_THRESHOLD = 30
    LOW_ATTENTION_PENALTY = 30
    ATTENTION_MANIPULATION_THRESHOLD = 99
    ATTENTION_MANIPULATION_WATCH_RATIO = 0.9
    ATTENTION_MANIPULATION_PENALTY = 40
    INSUFFICIENT_WATCH_RATIO = 0.7
    INSUFFICIENT_WATCH_PENALTY = 20
    EXTENDED_WATCH_RATIO = 1.5
    EXTENDED_WATCH_PENALTY = 10
    BLOCK_BELOW_SCORE = 40
    VALID_MIN_SCORE = 60

    # Check-ins
    EARTH_RADIUS_METERS = 6_371_000
    CHECKIN_COOLDOWN_HOURS = settings.CHECKIN_COOLDOWN_HOURS
    DEFAULT_MAX_DISTANCE_METERS = settings.CHECKIN_DEFAULT_MAX_DISTANCE_METERS
    MIN_MAX_DISTANCE_METERS = 10
    MAX_MAX_DISTANCE_METERS = 5000
    MAX_REWARD_AMOUNT = 10_000
    # streak days threshold -> bonus percent
    STREAK_BONUSES: dict[int, int] = {2: 5, 3: 10, 5: 15, 7: 25, 14: 35, 30: 50}

    # Session security
    FAILED_LOGIN_THRESHOLD = settings.FAILED_LOGIN_THRESHOLD
    FAILED_LOGIN_WINDOW_MINUTES = 60
    LOCKOUT_MINUTES = settings.FAILED_LOGIN_LOCKOUT_MINUTES
    ACCOUNT_LOCK_THRESHOLD = settings.ACCOUNT_LOCK_THRESHOLD
    ACCOUNT_LOCK_WINDOW_HOURS = 24

    # Flag reasons
    FORCED_LOGOUT_REASON = "Forced logout due to suspicious activity"
    SUSPICIOUS_REPORT_REASON = "Suspicious activity reported"
    ACCOUNT_LOCK_REASON = "Account locked due to repeated suspicious activity"
