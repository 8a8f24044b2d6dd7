"""Ghost session repository for central store operations."""

from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from firmsync.modules.ghost_sessions.models import GhostSession


class GhostSessionRepository:
    """Repository for GhostSession database operations.

    ``list_active_for_admin`` is what the isolation gate consumes. It
    returns records flagged active; callers still check ``is_current`` so
    an expired record that has not been swept grants nothing.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, ghost_session: GhostSession) -> GhostSession:
        self.session.add(ghost_session)
        await self.session.flush()
        await self.session.refresh(ghost_session)
        return ghost_session

    async def get_by_token(self, session_token: str) -> GhostSession | None:
        stmt = select(GhostSession).where(GhostSession.session_token == session_token)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active_for_admin(self, admin_user_id: int) -> Sequence[GhostSession]:
        """List sessions flagged active for one admin, newest first.

        Args:
            admin_user_id: The admin's user id

        Returns:
            Active session records across all target firms
        """
        stmt = (
            select(GhostSession)
            .where(
                GhostSession.admin_user_id == admin_user_id,
                GhostSession.is_active.is_(True),
            )
            .order_by(GhostSession.started_at.desc(), GhostSession.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_active(self) -> Sequence[GhostSession]:
        stmt = (
            select(GhostSession)
            .where(GhostSession.is_active.is_(True))
            .order_by(GhostSession.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def deactivate(
        self, ghost_session: GhostSession, ended_at: datetime | None = None
    ) -> GhostSession:
        """Mark a session as ended.

        Args:
            ghost_session: The session to end
            ended_at: End time, defaults to now

        Returns:
            The updated session
        """
        ghost_session.is_active = False
        ghost_session.ended_at = ended_at or datetime.now(UTC)
        await self.session.flush()
        return ghost_session

    async def deactivate_expired(self, now: datetime | None = None) -> int:
        """Deactivate every active session past its expiry.

        Expiry depends on each row's own ``max_duration``, so rows are
        checked in Python rather than in one UPDATE.

        Args:
            now: Reference time, defaults to now

        Returns:
            Number of sessions deactivated
        """
        now = now or datetime.now(UTC)
        count = 0
        for ghost_session in await self.list_active():
            if not ghost_session.is_current(now):
                ghost_session.is_active = False
                ghost_session.ended_at = ghost_session.ended_at or now
                count += 1
        await self.session.flush()
        return count
