"""Tenant administration service.

Tenants are created and changed only through this privileged path and
are never deleted; deactivation is a status transition.
"""

from collections.abc import Sequence
from typing import Annotated

import structlog
from fastapi import Depends

from firmsync.api.dependencies import AuditSinkDep, Connections, DBSession
from firmsync.core.audit import AuditAction, AuditEvent, AuditSink
from firmsync.core.errors import ConflictError, NotFoundError
from firmsync.core.tenancy.connections import ConnectionManager
from firmsync.core.tenancy.context import RequestMeta
from firmsync.modules.tenants.models import ProvisioningStatus, Tenant, TenantStatus
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.tenants.schemas import TenantCreate
from firmsync.modules.users.models import User


logger = structlog.get_logger()


class TenantAdminService:
    """Create tenants and move them between statuses.

    Args:
        repo: Tenant repository on the request's central session
        connections: Connection manager, for dropping cached pools
        audit_sink: Receives admin action events
    """

    def __init__(
        self,
        repo: TenantRepository,
        connections: ConnectionManager,
        audit_sink: AuditSink,
    ) -> None:
        self.repo = repo
        self.connections = connections
        self.audit_sink = audit_sink

    async def create_tenant(
        self, data: TenantCreate, actor: User, meta: RequestMeta | None = None
    ) -> Tenant:
        """Register a firm as active and waiting for provisioning.

        Raises:
            ConflictError: If the firm code is taken
        """
        if await self.repo.slug_exists(data.slug):
            raise ConflictError(
                "Firm code already taken",
                error_code="FIRM_CODE_TAKEN",
                details={"slug": data.slug},
            )

        tenant = await self.repo.create(
            Tenant(
                name=data.name,
                slug=data.slug,
                plan=data.plan,
                status=TenantStatus.ACTIVE,
                provisioning_status=ProvisioningStatus.PENDING,
            )
        )
        await self._audit(AuditAction.TENANT_CREATED, tenant, actor, meta)
        return tenant

    async def get_tenant(self, tenant_id: int) -> Tenant:
        tenant = await self.repo.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError(
                "Tenant not found", resource="tenant", resource_id=str(tenant_id)
            )
        return tenant

    async def list_tenants(self) -> Sequence[Tenant]:
        return await self.repo.list_all()

    async def change_status(
        self,
        tenant_id: int,
        status: TenantStatus,
        actor: User,
        meta: RequestMeta | None = None,
    ) -> Tenant:
        """Move a tenant to a new status.

        Leaving ``active`` drops the tenant's cached pool, so requests
        already past the gate cannot keep using it.
        """
        tenant = await self.get_tenant(tenant_id)
        previous = tenant.status
        if previous == status:
            return tenant

        tenant.status = status
        tenant = await self.repo.update(tenant)

        if previous == TenantStatus.ACTIVE:
            await self.connections.invalidate_tenant_connection(tenant_id)

        await self._audit(
            AuditAction.TENANT_STATUS_CHANGED,
            tenant,
            actor,
            meta,
            metadata={"from": previous.value, "to": status.value},
        )
        return tenant

    async def _audit(
        self,
        action: AuditAction,
        tenant: Tenant,
        actor: User,
        meta: RequestMeta | None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        meta = meta or RequestMeta()
        await self.audit_sink.record(
            AuditEvent(
                action=action,
                principal_id=actor.id,
                principal_email=actor.email,
                principal_role=str(actor.role),
                principal_firm_id=actor.firm_id,
                tenant_id=tenant.id,
                tenant_code=tenant.slug,
                tenant_name=tenant.name,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
                url=meta.url,
                request_id=meta.request_id,
                metadata=metadata or {},
            )
        )


async def get_tenant_admin_service(
    db: DBSession, connections: Connections, audit_sink: AuditSinkDep
) -> TenantAdminService:
    return TenantAdminService(TenantRepository(db), connections, audit_sink)


TenantAdminSvc = Annotated[TenantAdminService, Depends(get_tenant_admin_service)]
