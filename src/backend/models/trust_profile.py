"""
User trust profile model.

Holds the activity streak and the account lock. The trust score itself is
not stored; it is recomputed from the abuse log on demand. A lock stays set
until an admin clears it.
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class UserTrustProfile(Base):
    __tablename__ = "user_trust_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    streak_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_active_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    lock_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<UserTrustProfile(user={self.user_id}, streak={self.streak_days}, longest={self.longest_streak})>"
