"""
Account activity log model.

Security-relevant account events: login attempts, forced logouts, account
locks and unlocks, session denials and device trust updates.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class ActivityType(str, Enum):
    LOGIN = "login"
    FORCED_LOGOUT = "forced_logout"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    SESSION_DENIED = "session_denied"
    DEVICE_TRUST_UPDATE = "device_trust_update"


class ActivityStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class AccountActivityLog(Base):
    __tablename__ = "account_activity_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ActivityStatus.SUCCESS.value)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_account_activity_user_type_status_created", "user_id", "activity_type", "status", "created_at"),
    )
