"""
Rate limiting schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from schemas.common import CheckOutcome


class ActionCheckRequest(BaseModel):
    """Ask whether an action may proceed."""

    action_type: str = Field(..., min_length=1, max_length=50)
    content: Optional[str] = Field(None, max_length=20_000)
    device_fingerprint: Optional[str] = Field(None, max_length=64)


class RateLimitResult(BaseModel):
    outcome: CheckOutcome
    allowed: bool
    is_rate_limited: bool = False
    is_duplicate: bool = False
    recent_count: int = 0
    max_allowed: int = 0
    window_minutes: int = 0
    retry_after_seconds: int = 0


class WindowState(BaseModel):
    """Result of consuming (or failing to consume) a rate-limit slot."""

    action_type: str
    recent_count: int
    max_allowed: int
    window_minutes: int
    is_rate_limited: bool
    is_duplicate: bool = False
    retry_after_seconds: int = 0

    @property
    def allowed(self) -> bool:
        return not (self.is_rate_limited or self.is_duplicate)
