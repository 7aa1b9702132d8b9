"""
Session security schemas.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from schemas.common import CheckOutcome


class SessionCheckRequest(BaseModel):
    device_fingerprint: str = Field(..., min_length=1, max_length=64)


class SessionCheckResult(BaseModel):
    """
    valid is None when the outcome is indeterminate.
    """

    outcome: CheckOutcome
    valid: Optional[bool]
    reason: Optional[str] = None
    details: Optional[str] = None
    require_reauth: bool = False
    lockout_minutes: Optional[int] = None
    trust_score: Optional[int] = None


class LoginAttemptRequest(BaseModel):
    success: bool
    device_fingerprint: Optional[str] = Field(None, max_length=64)
    ip_address: Optional[str] = Field(None, max_length=45)
    user_agent: Optional[str] = Field(None, max_length=512)


class LoginAttemptResult(BaseModel):
    recorded: bool
    failed_logins_last_hour: int


class ForceLogoutRequest(BaseModel):
    keep_device: Optional[str] = Field(None, max_length=64)
    reason: Optional[str] = Field(None, max_length=255)


class ForceLogoutResult(BaseModel):
    devices_invalidated: int


class SuspiciousReportRequest(BaseModel):
    device_fingerprint: Optional[str] = Field(None, max_length=64)
    details: dict[str, Any] = Field(default_factory=dict)


class SuspiciousReportResult(BaseModel):
    account_locked: bool
    suspicious_count: int


class AccountUnlockResult(BaseModel):
    was_locked: bool
    devices_released: int
