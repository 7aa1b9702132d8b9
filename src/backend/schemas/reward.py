"""
Reward attempt schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from schemas.common import CheckOutcome


class RewardAttemptRequest(BaseModel):
    """
    Client-reported engagement for a reward claim.

    attention_score and watch_duration_seconds are self-reported.
    """

    attention_score: float = Field(..., ge=0, le=100)
    watch_duration_seconds: float = Field(..., ge=0)
    required_duration_seconds: float = Field(..., gt=0)
    device_fingerprint: Optional[str] = Field(None, max_length=64)


class RewardAttemptResult(BaseModel):
    outcome: CheckOutcome
    valid: bool
    score: int = Field(..., ge=0, le=100)
    flags: list[str] = Field(default_factory=list)
    should_block: bool
    trust_score: Optional[int] = None
    reward_multiplier: Optional[float] = None
