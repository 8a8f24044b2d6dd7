"""Database layer - declarative base, mixins and central schema setup."""

from sqlalchemy.ext.asyncio import AsyncEngine

from firmsync.core.database.base import Base, IntIdMixin, TimestampMixin


async def init_central_schema(engine: AsyncEngine) -> None:
    """Create every central store table that does not exist yet.

    Args:
        engine: Engine bound to the central routing store
    """
    # Register all models on Base.metadata before create_all
    import firmsync.core.audit.models  # noqa: F401, PLC0415
    import firmsync.modules.ghost_sessions.models  # noqa: F401, PLC0415
    import firmsync.modules.tenants.models  # noqa: F401, PLC0415
    import firmsync.modules.users.models  # noqa: F401, PLC0415

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "IntIdMixin",
    "TimestampMixin",
    "init_central_schema",
]
