"""
Trust score schemas.
"""

from enum import Enum

from pydantic import BaseModel, Field


class AccountState(str, Enum):
    NORMAL = "normal"
    THROTTLED = "throttled"
    LOCKED = "locked"


class TrustSummary(BaseModel):
    user_id: str
    trust_score: int = Field(..., ge=0, le=100)
    reward_multiplier: float
    should_throttle: bool
    account_state: AccountState
