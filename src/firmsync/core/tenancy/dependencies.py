"""FastAPI dependencies for tenant-scoped routes.

Mount ``require_tenant_access`` on every router under
``/api/tenant/{firm_code}``; handlers then take ``CurrentTenant`` and
``TenantQuery`` to reach tenant data.
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request

from firmsync.api.dependencies import AuditSinkDep, Connections, DBSession, RequestMetaDep
from firmsync.core.tenancy.context import TenantContext, TenantQueryScope
from firmsync.core.tenancy.errors import MissingTenantContextError
from firmsync.core.tenancy.isolation import TenantIsolationGate
from firmsync.core.tenancy.router import TenantRouter
from firmsync.modules.ghost_sessions.repos import GhostSessionRepository
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.users.repos import UserRepository


async def require_tenant_access(
    firm_code: str,
    request: Request,
    db: DBSession,
    audit_sink: AuditSinkDep,
    meta: RequestMetaDep,
) -> TenantContext:
    """Authorize the request for the firm named in the path.

    On success the context is stored on ``request.state.tenant`` and the
    tenant is bound to the log context.
    """
    gate = TenantIsolationGate(
        tenants=TenantRepository(db),
        ghost_sessions=GhostSessionRepository(db),
        users=UserRepository(db),
        audit_sink=audit_sink,
    )

    context = await gate.authorize(
        firm_code, getattr(request.state, "user_id", None), meta
    )

    request.state.tenant = context
    request.state.tenant_id = context.firm_id
    request.state.firm_code = context.firm_code
    structlog.contextvars.bind_contextvars(
        tenant_id=context.firm_id, firm_code=context.firm_code
    )
    return context


async def get_tenant_context(request: Request) -> TenantContext:
    """Return the context set by ``require_tenant_access``.

    Raises:
        MissingTenantContextError: If the gate has not run for this request
    """
    context = getattr(request.state, "tenant", None)
    if context is None:
        raise MissingTenantContextError()
    return context


async def add_tenant_scope(
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> TenantQueryScope:
    """Provide the query-scope helper for the authorized tenant."""
    return TenantQueryScope(context.firm_id)


async def get_tenant_router(connections: Connections) -> TenantRouter:
    return TenantRouter(connections)


CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]
TenantQuery = Annotated[TenantQueryScope, Depends(add_tenant_scope)]
TenantRouterDep = Annotated[TenantRouter, Depends(get_tenant_router)]
