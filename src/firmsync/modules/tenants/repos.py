"""Tenant repositories for central store operations."""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from firmsync.modules.tenants.models import (
    MigrationStatus,
    Tenant,
    TenantMigration,
    TenantStatus,
)


class TenantRepository:
    """Repository for Tenant database operations.

    Tenants are looked up either by numeric id or by slug (firm code).
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, tenant: Tenant) -> Tenant:
        """Create a new tenant.

        Args:
            tenant: Tenant instance to create

        Returns:
            The created tenant with ID populated
        """
        self.session.add(tenant)
        await self.session.flush()
        await self.session.refresh(tenant)
        return tenant

    async def get_by_id(self, tenant_id: int) -> Tenant | None:
        return await self.session.get(Tenant, tenant_id)

    async def get_by_slug(self, slug: str) -> Tenant | None:
        """Get a tenant by its firm code, regardless of status.

        Args:
            slug: The firm code

        Returns:
            Tenant if found, None otherwise
        """
        stmt = select(Tenant).where(Tenant.slug == slug)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_by_slug(self, slug: str) -> Tenant | None:
        """Get a tenant by firm code only when its status is active."""
        stmt = select(Tenant).where(
            Tenant.slug == slug,
            Tenant.status == TenantStatus.ACTIVE,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_by_id(self, tenant_id: int) -> Tenant | None:
        stmt = select(Tenant).where(
            Tenant.id == tenant_id,
            Tenant.status == TenantStatus.ACTIVE,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> Sequence[Tenant]:
        """List every active tenant, ordered by id."""
        stmt = (
            select(Tenant)
            .where(Tenant.status == TenantStatus.ACTIVE)
            .order_by(Tenant.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_all(self) -> Sequence[Tenant]:
        result = await self.session.execute(select(Tenant).order_by(Tenant.id))
        return result.scalars().all()

    async def slug_exists(self, slug: str) -> bool:
        return await self.get_by_slug(slug) is not None

    async def update(self, tenant: Tenant) -> Tenant:
        await self.session.flush()
        await self.session.refresh(tenant)
        return tenant


class TenantMigrationRepository:
    """Repository for per-tenant migration outcome rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        tenant_id: int,
        migration_name: str,
        status: MigrationStatus,
        error_message: str | None = None,
    ) -> TenantMigration:
        """Record the outcome of one migration on one tenant.

        Args:
            tenant_id: Tenant the migration ran against
            migration_name: Migration identifier
            status: success or failed
            error_message: Failure text, when failed

        Returns:
            The stored row
        """
        row = TenantMigration(
            tenant_id=tenant_id,
            migration_name=migration_name,
            status=status,
            error_message=error_message,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_tenant(self, tenant_id: int) -> Sequence[TenantMigration]:
        stmt = (
            select(TenantMigration)
            .where(TenantMigration.tenant_id == tenant_id)
            .order_by(TenantMigration.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
