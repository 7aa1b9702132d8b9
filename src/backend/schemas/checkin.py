"""
Geofenced check-in schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.checkin import RewardType
from schemas.common import CheckOutcome


class CheckinRequest(BaseModel):
    """A check-in attempt at a promotion location."""

    promotion_id: str = Field(..., min_length=1, max_length=64)
    business_name: Optional[str] = Field(None, max_length=255)
    target_latitude: float = Field(..., ge=-90, le=90)
    target_longitude: float = Field(..., ge=-180, le=180)
    user_latitude: float = Field(..., ge=-90, le=90)
    user_longitude: float = Field(..., ge=-180, le=180)
    reward_amount: int = Field(0, ge=0, le=10_000)
    reward_type: RewardType = RewardType.VICOIN
    max_distance_meters: int = Field(100, ge=10, le=5000)


class StreakInfo(BaseModel):
    current: int
    longest: int
    bonus_percent: int
    bonus_amount: int


class RewardInfo(BaseModel):
    base: int
    bonus: int
    total: int
    type: Optional[str] = None


class CheckinResult(BaseModel):
    outcome: CheckOutcome
    verified: bool
    status: Optional[str] = None
    reason: Optional[str] = None
    message: str
    checkin_id: Optional[str] = None
    distance_meters: Optional[int] = None
    max_distance_meters: Optional[int] = None
    remaining_distance_meters: Optional[int] = None
    streak: Optional[StreakInfo] = None
    reward: Optional[RewardInfo] = None
    reward_claimed: bool = False
    last_checkin_at: Optional[datetime] = None
