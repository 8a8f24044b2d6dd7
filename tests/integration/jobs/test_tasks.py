"""Integration tests for background jobs against the SQLite central store."""

from datetime import UTC, datetime, timedelta

import pytest

from firmsync.core.constants import GHOST_SESSION_EXPIRY_SWEEP_MINUTES
from firmsync.core.jobs.tasks import (
    expire_ghost_sessions,
    migrate_all_tenants,
    provision_tenant_database,
)
from firmsync.core.jobs.worker import WorkerSettings, shutdown
from firmsync.core.auth.roles import Role
from firmsync.modules.ghost_sessions.models import GhostSession
from firmsync.modules.ghost_sessions.repos import GhostSessionRepository
from firmsync.modules.tenants.models import ProvisioningStatus


pytestmark = pytest.mark.integration


@pytest.fixture
def ctx(connections):
    return {"connections": connections}


class TestProvisionJob:
    async def test_provisions_tenant(self, ctx, create_tenant, load_tenant):
        tenant = await create_tenant()

        assert await provision_tenant_database(ctx, tenant.id) is True
        assert (await load_tenant(tenant.id)).provisioning_status == ProvisioningStatus.READY

    async def test_reports_failure(self, ctx, create_tenant, provisioner, load_tenant):
        tenant = await create_tenant()
        provisioner.fail_create = True

        assert await provision_tenant_database(ctx, tenant.id) is False
        assert (await load_tenant(tenant.id)).provisioning_status == ProvisioningStatus.FAILED


class TestMigrateAllTenantsJob:
    async def test_counts_outcomes(self, ctx, connections, create_provisioned_tenant):
        broken = await create_provisioned_tenant()
        await create_provisioned_tenant()
        engine = await connections.get_tenant_connection(broken.id)
        async with engine.begin() as conn:
            await conn.exec_driver_sql("CREATE TABLE notes (id INTEGER PRIMARY KEY)")

        result = await migrate_all_tenants(
            ctx, "CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)", "add_notes"
        )

        assert result == {"succeeded": 1, "failed": 1, "failed_tenant_ids": [broken.id]}

    async def test_no_tenants(self, ctx):
        result = await migrate_all_tenants(ctx, "SELECT 1")

        assert result == {"succeeded": 0, "failed": 0, "failed_tenant_ids": []}


class TestExpireGhostSessionsJob:
    async def test_deactivates_only_expired(
        self, ctx, connections, create_tenant, create_user
    ):
        tenant = await create_tenant()
        admin = await create_user(role=Role.ADMIN, firm_id=None)
        now = datetime.now(UTC)

        async with connections.central_session() as session:
            repo = GhostSessionRepository(session)
            stale = await repo.create(
                GhostSession(
                    admin_user_id=admin.id,
                    target_firm_id=tenant.id,
                    purpose="Old",
                    started_at=now - timedelta(hours=3),
                    max_duration=3600,
                )
            )
            fresh = await repo.create(
                GhostSession(
                    admin_user_id=admin.id,
                    target_firm_id=tenant.id,
                    purpose="New",
                    started_at=now,
                    max_duration=3600,
                )
            )

        result = await expire_ghost_sessions(ctx)

        assert result == {"expired": 1}
        async with connections.central_session() as session:
            active = await GhostSessionRepository(session).list_active()
        assert [s.id for s in active] == [fresh.id]
        assert stale.id not in [s.id for s in active]

    async def test_nothing_to_expire(self, ctx):
        assert await expire_ghost_sessions(ctx) == {"expired": 0}


class TestWorkerSettings:
    def test_registers_jobs(self):
        names = [f.__name__ for f in WorkerSettings.functions]

        assert names == [
            "provision_tenant_database",
            "migrate_all_tenants",
            "expire_ghost_sessions",
        ]

    def test_expiry_sweep_is_scheduled(self):
        (job,) = WorkerSettings.cron_jobs

        assert job.coroutine is expire_ghost_sessions
        assert job.minute == GHOST_SESSION_EXPIRY_SWEEP_MINUTES

    async def test_shutdown_closes_connections(self, connections, create_provisioned_tenant):
        await create_provisioned_tenant()

        await shutdown({"connections": connections})

        assert len(connections.cache) == 0
