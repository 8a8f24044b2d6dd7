"""ARQ worker configuration.

Defines the worker settings including registered jobs,
cron schedules, and startup/shutdown hooks.
"""

from typing import Any, ClassVar

import structlog
from arq import cron

from firmsync.config import settings
from firmsync.core.constants import GHOST_SESSION_EXPIRY_SWEEP_MINUTES
from firmsync.core.jobs.registry import get_redis_settings
from firmsync.core.jobs.tasks import (
    expire_ghost_sessions,
    migrate_all_tenants,
    provision_tenant_database,
)
from firmsync.core.logging import configure_logging
from firmsync.core.tenancy.connections import ConnectionManager


async def startup(ctx: dict[str, Any]) -> None:
    """Build the worker's connection manager.

    Args:
        ctx: Worker context dict (shared across all jobs)
    """
    configure_logging(settings)
    log = structlog.get_logger()
    log.info("worker_startup", environment=settings.environment)

    ctx["connections"] = ConnectionManager.from_settings(settings)

    log.info("worker_startup_complete")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Close every pool the worker opened.

    Args:
        ctx: Worker context dict
    """
    log = structlog.get_logger()
    log.info("worker_shutdown")

    connections = ctx.get("connections")
    if connections:
        await connections.close_all_connections()

    log.info("worker_shutdown_complete")


class WorkerSettings:
    """ARQ worker settings.

    Run the worker with:
        arq firmsync.core.jobs.worker.WorkerSettings
    """

    functions: ClassVar[list[Any]] = [
        provision_tenant_database,
        migrate_all_tenants,
        expire_ghost_sessions,
    ]

    cron_jobs: ClassVar[list[Any]] = [
        cron(expire_ghost_sessions, minute=GHOST_SESSION_EXPIRY_SWEEP_MINUTES),
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = get_redis_settings()

    max_jobs = 10
    job_timeout = 600  # provisioning waits on the provider API
    keep_result = 3600
    retry_jobs = False
