"""Background job tasks.

Each job receives the worker context, which holds the worker's
``ConnectionManager`` under ``"connections"``.
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from firmsync.core.constants import CUSTOM_MIGRATION_NAME
from firmsync.core.tenancy.connections import ConnectionManager
from firmsync.modules.ghost_sessions.repos import GhostSessionRepository


log = structlog.get_logger()


async def provision_tenant_database(ctx: dict[str, Any], tenant_id: int) -> bool:
    """Provision a tenant's dedicated database.

    Args:
        ctx: Worker context
        tenant_id: Tenant to provision

    Returns:
        True if the tenant ended up ready
    """
    connections: ConnectionManager = ctx["connections"]
    ok = await connections.provision_tenant_database(tenant_id)
    log.info("provision_tenant_database_complete", tenant_id=tenant_id, success=ok)
    return ok


async def migrate_all_tenants(
    ctx: dict[str, Any], sql: str, migration_name: str = CUSTOM_MIGRATION_NAME
) -> dict[str, Any]:
    """Apply a migration script to every provisioned tenant.

    Returns:
        Counts of successful and failed tenants plus the failed ids
    """
    connections: ConnectionManager = ctx["connections"]
    results = await connections.run_migration_on_all_tenants(sql, migration_name)
    failed = [r.tenant_id for r in results if not r.succeeded]

    log.info(
        "migrate_all_tenants_complete",
        migration_name=migration_name,
        succeeded=len(results) - len(failed),
        failed=len(failed),
    )
    return {
        "succeeded": len(results) - len(failed),
        "failed": len(failed),
        "failed_tenant_ids": failed,
    }


async def expire_ghost_sessions(ctx: dict[str, Any]) -> dict[str, int]:
    """Deactivate ghost sessions that outlived their max duration.

    Expired sessions already grant nothing; this keeps the active set small
    and the records accurate.
    """
    connections: ConnectionManager = ctx["connections"]

    async with connections.central_session() as session:
        expired = await GhostSessionRepository(session).deactivate_expired(
            datetime.now(UTC)
        )

    log.info("expire_ghost_sessions_complete", expired=expired)
    return {"expired": expired}
