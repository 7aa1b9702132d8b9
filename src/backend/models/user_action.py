"""
User action log and window guard models.

Rate-limit windows are derived from user_actions at check time. The
action_window_guards row for (user, action type) is locked at the start of
every check so concurrent checks for the same pair run one after another.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class UserAction(Base):
    """A rate-limited action that was allowed."""

    __tablename__ = "user_actions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # SHA-256 of the payload, never the payload itself
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_user_actions_user_type_created", "user_id", "action_type", "created_at"),
        Index("ix_user_actions_user_type_content", "user_id", "action_type", "content_hash"),
    )


class ActionWindowGuard(Base):
    """Serialization point for one user's checks of one action type."""

    __tablename__ = "action_window_guards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (UniqueConstraint("user_id", "action_type", name="uq_action_window_guards_user_type"),)

    def __repr__(self) -> str:
        return f"<ActionWindowGuard(user={self.user_id}, action={self.action_type}, version={self.version})>"
