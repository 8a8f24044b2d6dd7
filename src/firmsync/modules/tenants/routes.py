"""Tenant-scoped API routes.

Everything under ``/api/tenant/{firm_code}`` passes the isolation gate
before the handler runs.
"""

from fastapi import APIRouter, Depends, status

from firmsync.core.tenancy.dependencies import (
    CurrentTenant,
    TenantQuery,
    TenantRouterDep,
    require_tenant_access,
)
from firmsync.modules.tenants.schemas import (
    CaseResponse,
    ClientCreate,
    ClientResponse,
    TenantContextResponse,
)


router = APIRouter(
    prefix="/api/tenant/{firm_code}",
    tags=["tenant"],
    dependencies=[Depends(require_tenant_access)],
)


@router.get(
    "/context",
    response_model=TenantContextResponse,
    summary="Resolved tenant for this request",
)
async def get_context(tenant: CurrentTenant) -> TenantContextResponse:
    return TenantContextResponse(
        firm_id=tenant.firm_id,
        firm_code=tenant.firm_code,
        firm_name=tenant.firm.name,
        is_admin_access=tenant.is_admin_access,
        ghost_session_id=tenant.ghost_session_id,
    )


@router.get(
    "/clients",
    response_model=list[ClientResponse],
    summary="List the firm's clients",
)
async def list_clients(tenant: CurrentTenant, tenant_router: TenantRouterDep) -> list[dict]:
    return await tenant_router.get_tenant_clients(tenant.firm_id)


@router.post(
    "/clients",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client in the firm",
)
async def create_client(
    data: ClientCreate,
    scope: TenantQuery,
    tenant_router: TenantRouterDep,
) -> dict:
    return await tenant_router.create_tenant_client(
        scope.firm_id, scope.add_firm_scope(data.model_dump())
    )


@router.get(
    "/cases",
    response_model=list[CaseResponse],
    summary="List the firm's cases",
)
async def list_cases(tenant: CurrentTenant, tenant_router: TenantRouterDep) -> list[dict]:
    return await tenant_router.get_tenant_cases(tenant.firm_id)
