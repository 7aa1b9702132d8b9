"""
Device fingerprint schemas.
"""

import hashlib
import hmac
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import CheckOutcome

# Order matters: changing it changes every stored hash.
CANONICAL_FIELDS = (
    "user_agent",
    "language",
    "platform",
    "screen_resolution",
    "timezone",
    "color_depth",
    "device_memory",
    "hardware_concurrency",
    "touch_support",
    "webgl_vendor",
    "webgl_renderer",
)


def _canonical(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class DeviceCharacteristics(BaseModel):
    """
    Device characteristics collected by the client.

    Unknown keys are accepted and kept in the stored snapshot but do not
    take part in the hash.
    """

    model_config = ConfigDict(extra="allow")

    user_agent: Optional[str] = Field(None, max_length=1024)
    language: Optional[str] = Field(None, max_length=64)
    platform: Optional[str] = Field(None, max_length=128)
    screen_resolution: Optional[str] = Field(None, max_length=32)  # "1920x1080"
    timezone: Optional[Union[str, int]] = None
    color_depth: Optional[int] = None
    device_memory: Optional[float] = None  # GB
    hardware_concurrency: Optional[int] = None
    touch_support: Optional[bool] = None
    webgl_vendor: Optional[str] = Field(None, max_length=256)
    webgl_renderer: Optional[str] = Field(None, max_length=256)

    def canonical_string(self) -> str:
        """Pipe-joined canonical characteristic vector."""
        return "|".join(_canonical(getattr(self, name)) for name in CANONICAL_FIELDS)

    def compute_fingerprint_hash(self, salt: str) -> str:
        """Compute the stable, one-way fingerprint hash."""
        return hmac.new(
            salt.encode("utf-8"),
            self.canonical_string().encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def snapshot(self) -> dict[str, Any]:
        """Raw characteristics for storage."""
        return self.model_dump(mode="json", exclude_none=True)


class DeviceRegistrationRequest(BaseModel):
    characteristics: DeviceCharacteristics


class DeviceRegistrationResult(BaseModel):
    outcome: CheckOutcome = CheckOutcome.ALLOWED
    fingerprint_hash: str
    is_new_device: bool
    is_trusted: bool
    flagged: bool = False


class DuplicateDeviceResult(BaseModel):
    outcome: CheckOutcome
    fingerprint_hash: str
    is_duplicate: bool
    other_user_count: int = 0


class DeviceFlagRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class DeviceFlagResult(BaseModel):
    fingerprint_hash: str
    flagged: bool
    devices_updated: int


class DeviceTrustEventRequest(BaseModel):
    fingerprint_hash: str = Field(..., min_length=16, max_length=64)
    event: str = Field(..., min_length=1, max_length=64)


class DeviceTrustResult(BaseModel):
    fingerprint_hash: str
    trust_score: int = Field(..., ge=0, le=100)
    is_trusted: bool
    flagged: bool
