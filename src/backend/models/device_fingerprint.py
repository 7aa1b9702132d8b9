"""
Device fingerprint model.

One row per (user, device) pair. Rows are never deleted, only flagged.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class DeviceFingerprint(Base):
    """
    A device seen for a user.

    - fingerprint_hash: salted one-way digest of the characteristic vector
    - characteristics: last raw snapshot, opaque to the engine
    - trust_score: 0-100, starts at 100
    - flagged: one-way; only manual review clears it
    """

    __tablename__ = "device_fingerprints"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    fingerprint_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    characteristics: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    trust_score: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    is_trusted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    flag_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "fingerprint_hash", name="uq_device_fingerprints_user_hash"),
        Index("ix_device_fingerprints_user_last_seen", "user_id", "last_seen_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<DeviceFingerprint(user={self.user_id}, hash={self.fingerprint_hash[:8]}, "
            f"score={self.trust_score}, flagged={self.flagged})>"
        )
