"""Tenant resolution and tenant-scoped query execution.

``TenantRouter`` is the non-HTTP entry point into tenant data. It does not
authorize on its own: callers outside a request must call
``validate_access`` before ``query_tenant_data``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import insert, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.base import Executable

from firmsync.core.observability.tracing import get_tracer, tenant_span
from firmsync.core.tenancy.connections import ConnectionManager
from firmsync.core.tenancy.context import TenantQueryScope
from firmsync.core.tenancy.errors import TenantQueryError, TenantUnavailableError
from firmsync.core.tenancy.policy import can_access_tenant
from firmsync.core.tenancy.schema import cases, clients
from firmsync.modules.tenants.repos import TenantRepository
from firmsync.modules.users.repos import UserRepository


logger = structlog.get_logger()
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class ResolvedTenant:
    tenant_id: int
    engine: AsyncEngine


class TenantRouter:
    """Routes tenant-scoped work to the right tenant database.

    Args:
        connections: The process's connection manager
    """

    def __init__(self, connections: ConnectionManager) -> None:
        self.connections = connections

    async def resolve(
        self,
        tenant_id_or_slug: int | str | None = None,
        user_id: int | None = None,
    ) -> int | None:
        """Work out which tenant a call is about.

        An explicit tenant wins: an int is a tenant id and a str is always a
        firm code, since firm codes may be all digits. Otherwise the user's
        home tenant is used.

        Args:
            tenant_id_or_slug: Tenant id or firm code
            user_id: Calling user, for the home-tenant fallback

        Returns:
            The tenant id, or None if nothing resolves
        """
        if tenant_id_or_slug is not None and tenant_id_or_slug != "":
            if isinstance(tenant_id_or_slug, int):
                return tenant_id_or_slug
            async with self.connections.central_session() as session:
                tenant = await TenantRepository(session).get_by_slug(tenant_id_or_slug)
            return tenant.id if tenant else None

        if user_id is not None:
            async with self.connections.central_session() as session:
                user = await UserRepository(session).get_by_id(user_id)
            return user.firm_id if user else None

        return None

    async def get_tenant_from_context(
        self,
        tenant_id_or_slug: int | str | None = None,
        user_id: int | None = None,
    ) -> ResolvedTenant | None:
        """Resolve a tenant and open its pool.

        Returns:
            The tenant id and engine, or None when nothing resolves or the
            tenant has no usable database
        """
        tenant_id = await self.resolve(tenant_id_or_slug, user_id)
        if tenant_id is None:
            return None
        try:
            engine = await self.connections.get_tenant_connection(tenant_id)
        except TenantUnavailableError:
            return None
        return ResolvedTenant(tenant_id=tenant_id, engine=engine)

    async def validate_access(self, user_id: int, tenant_id: int) -> bool:
        """Check whether a user may act inside a tenant.

        Applies the same rule as the HTTP isolation gate. Missing and
        inactive users are refused.
        """
        async with self.connections.central_session() as session:
            user = await UserRepository(session).get_by_id(user_id)
        if user is None or not user.is_active:
            return False
        return can_access_tenant(user.role, user.firm_id, tenant_id)

    async def query_tenant_data(
        self,
        tenant_id: int,
        query: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run one statement on a tenant database inside a transaction.

        Args:
            tenant_id: A resolved, validated tenant id
            query: SQL text with named parameters, or a Core statement
            params: Bind parameters

        Returns:
            Result rows as dicts; empty for statements without rows

        Raises:
            TenantUnavailableError: Tenant has no usable database
            TenantConnectionError: The pool could not be opened
            TenantQueryError: The statement failed
        """
        engine = await self.connections.get_tenant_connection(tenant_id)
        statement = text(query) if isinstance(query, str) else query

        try:
            with tenant_span(tracer, "tenant.query", tenant_id):
                async with engine.begin() as conn:
                    result = await conn.execute(statement, dict(params or {}))
                    if not result.returns_rows:
                        return []
                    return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            logger.error(
                "tenant_query_failed",
                tenant_id=tenant_id,
                error_type=type(e).__name__,
            )
            raise TenantQueryError(details={"tenant_id": tenant_id}) from e

    async def get_tenant_clients(self, tenant_id: int) -> list[dict[str, Any]]:
        stmt = TenantQueryScope(tenant_id).scope_select(
            select(clients).order_by(clients.c.created_at.desc(), clients.c.id.desc()),
            clients,
        )
        return await self.query_tenant_data(tenant_id, stmt)

    async def get_tenant_cases(self, tenant_id: int) -> list[dict[str, Any]]:
        """List cases with their client's name, newest first."""
        stmt = TenantQueryScope(tenant_id).scope_select(
            select(cases, clients.c.first_name, clients.c.last_name)
            .select_from(cases.outerjoin(clients, cases.c.client_id == clients.c.id))
            .order_by(cases.c.created_at.desc(), cases.c.id.desc()),
            cases,
        )
        return await self.query_tenant_data(tenant_id, stmt)

    async def create_tenant_client(
        self, tenant_id: int, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Insert a client row; ``firm_id`` is always the target tenant."""
        values = TenantQueryScope(tenant_id).add_firm_scope(data)
        stmt = insert(clients).values(**values).returning(*clients.c)
        rows = await self.query_tenant_data(tenant_id, stmt)
        return rows[0]
