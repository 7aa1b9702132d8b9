"""
Abuse log model.

Append-only record of detected violations. The engine only inserts rows;
the resolved_* columns belong to the external review process.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class AbuseType(str, Enum):
    """Kinds of violation the engine records."""

    DUPLICATE_DEVICE = "duplicate_device"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    DUPLICATE_CONTENT = "duplicate_content"
    ATTENTION_FRAUD = "attention_fraud"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    GEO_MISMATCH = "geo_mismatch"


class AbuseSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AbuseLog(Base):
    """A single logged violation."""

    __tablename__ = "abuse_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    abuse_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default=AbuseSeverity.LOW.value)
    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)

    # Request context (optional)
    device_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Written by the review process only
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_abuse_logs_user_created", "user_id", "created_at"),
        Index("ix_abuse_logs_user_type_created", "user_id", "abuse_type", "created_at"),
        Index("ix_abuse_logs_type_created", "abuse_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AbuseLog(user={self.user_id}, type={self.abuse_type}, severity={self.severity})>"
