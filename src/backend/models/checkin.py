"""
Geofenced check-in models.

PromotionCheckin stores every attempt (verified or failed). CheckinClaim
holds one row per (user, promotion) and is the atomic guard for the
one-check-in-per-24-hours rule.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class CheckinStatus(str, Enum):
    VERIFIED = "verified"
    FAILED = "failed"


class RewardType(str, Enum):
    VICOIN = "vicoin"
    ICOIN = "icoin"


class PromotionCheckin(Base):
    """A single check-in attempt at a promotion location."""

    __tablename__ = "promotion_checkins"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    promotion_id: Mapped[str] = mapped_column(String(64), nullable=False)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown Business")

    # Coordinates (degrees)
    target_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    target_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    user_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    user_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    distance_meters: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Reward (null for failed attempts)
    reward_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reward_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    streak_day: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    streak_bonus: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reward_claimed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reward_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    checked_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_promotion_checkins_user_promotion_time", "user_id", "promotion_id", "checked_in_at"),
    )

    def __repr__(self) -> str:
        return f"<PromotionCheckin(user={self.user_id}, promotion={self.promotion_id}, status={self.status})>"


class CheckinClaim(Base):
    """Last check-in time per (user, promotion)."""

    __tablename__ = "checkin_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    promotion_id: Mapped[str] = mapped_column(String(64), nullable=False)
    last_checkin_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "promotion_id", name="uq_checkin_claims_user_promotion"),)
