"""Platform-admin tenant management routes."""

from typing import Any

from fastapi import APIRouter, Response, status

from firmsync.api.dependencies import Connections, JobQueue, RequestMetaDep
from firmsync.core.auth.dependencies import PlatformAdmin
from firmsync.core.jobs.registry import enqueue_provisioning, provision_job_id
from firmsync.modules.tenants.models import ProvisioningStatus
from firmsync.modules.tenants.schemas import (
    ProvisionJobResponse,
    TenantCreate,
    TenantResponse,
    TenantStatusUpdate,
)
from firmsync.modules.tenants.services import TenantAdminSvc


router = APIRouter(prefix="/api/v1/admin/tenants", tags=["admin"])


@router.post(
    "",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a firm",
    description="Creates an active tenant waiting for database provisioning.",
)
async def create_tenant(
    data: TenantCreate,
    admin: PlatformAdmin,
    service: TenantAdminSvc,
    meta: RequestMetaDep,
) -> TenantResponse:
    tenant = await service.create_tenant(data, admin, meta)
    return TenantResponse.model_validate(tenant)


@router.get("", response_model=list[TenantResponse], summary="List firms")
async def list_tenants(_admin: PlatformAdmin, service: TenantAdminSvc) -> list[TenantResponse]:
    return [TenantResponse.model_validate(t) for t in await service.list_tenants()]


@router.get("/connections/stats", summary="Tenant pool cache counters")
async def connection_stats(_admin: PlatformAdmin, connections: Connections) -> dict[str, Any]:
    return connections.cache_stats()


@router.get("/{tenant_id}", response_model=TenantResponse, summary="Get a firm")
async def get_tenant(
    tenant_id: int, _admin: PlatformAdmin, service: TenantAdminSvc
) -> TenantResponse:
    return TenantResponse.model_validate(await service.get_tenant(tenant_id))


@router.patch(
    "/{tenant_id}/status",
    response_model=TenantResponse,
    summary="Suspend, deactivate or reactivate a firm",
)
async def change_tenant_status(
    tenant_id: int,
    data: TenantStatusUpdate,
    admin: PlatformAdmin,
    service: TenantAdminSvc,
    meta: RequestMetaDep,
) -> TenantResponse:
    tenant = await service.change_status(tenant_id, data.status, admin, meta)
    return TenantResponse.model_validate(tenant)


@router.post(
    "/{tenant_id}/provision",
    response_model=ProvisionJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue dedicated database provisioning",
)
async def provision_tenant(
    tenant_id: int,
    _admin: PlatformAdmin,
    service: TenantAdminSvc,
    queue: JobQueue,
) -> ProvisionJobResponse:
    tenant = await service.get_tenant(tenant_id)
    if tenant.provisioning_status == ProvisioningStatus.READY:
        return ProvisionJobResponse(tenant_id=tenant_id, status="ready")

    job = await enqueue_provisioning(queue, tenant_id)
    if job is None:
        return ProvisionJobResponse(
            tenant_id=tenant_id, job_id=provision_job_id(tenant_id), status="already_queued"
        )
    return ProvisionJobResponse(tenant_id=tenant_id, job_id=job.job_id)


@router.post(
    "/{tenant_id}/connection/invalidate",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Drop the firm's cached connection pool",
)
async def invalidate_connection(
    tenant_id: int, _admin: PlatformAdmin, connections: Connections
) -> Response:
    await connections.invalidate_tenant_connection(tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tenant_id}/connection/check", summary="Probe the firm's database")
async def check_connection(
    tenant_id: int, _admin: PlatformAdmin, connections: Connections
) -> dict[str, Any]:
    return {
        "tenant_id": tenant_id,
        "healthy": await connections.test_tenant_connection(tenant_id),
    }
