"""Ghost session database models."""

import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from firmsync.core.constants import (
    DEFAULT_GHOST_SESSION_SECONDS,
    MAX_IPV6_LENGTH,
    MAX_USER_AGENT_LENGTH,
)
from firmsync.core.database.base import Base, IntIdMixin


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class GhostSession(Base, IntIdMixin):
    """A time-boxed grant for a platform admin to act inside one firm.

    A session is current while it is active, not ended and younger than
    ``max_duration`` seconds. An expired record that has not been swept
    yet grants nothing.

    Attributes:
        admin_user_id: The admin acting in the firm
        target_firm_id: The only firm this session opens
        session_token: Opaque handle used to end the session
        purpose: Free-text support reason
        access_level: Access granted inside the firm
        is_active: Cleared on end or expiry sweep
        started_at: When the session began
        ended_at: When the session was ended
        max_duration: Lifetime in seconds
    """

    __tablename__ = "admin_ghost_sessions"

    admin_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        index=True,
        nullable=False,
    )
    target_firm_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        index=True,
        nullable=False,
    )
    session_token: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        index=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    access_level: Mapped[str] = mapped_column(String(20), default="read", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(MAX_IPV6_LENGTH), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(
        String(MAX_USER_AGENT_LENGTH), nullable=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    max_duration: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_GHOST_SESSION_SECONDS,
        nullable=False,
    )

    @property
    def expires_at(self) -> datetime:
        return _as_utc(self.started_at) + timedelta(seconds=self.max_duration)

    def is_current(self, now: datetime | None = None) -> bool:
        """Check whether this session grants access at ``now``."""
        now = _as_utc(now or _utcnow())
        return self.is_active and self.ended_at is None and now < self.expires_at

    def __repr__(self) -> str:
        return (
            f"<GhostSession(id={self.id}, admin_user_id={self.admin_user_id}, "
            f"target_firm_id={self.target_firm_id}, is_active={self.is_active})>"
        )
