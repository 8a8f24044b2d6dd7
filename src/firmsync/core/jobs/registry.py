"""The API process's handle on the arq queue.

The API never provisions a tenant inline: it enqueues
``provision_tenant_database`` and the worker does the slow provider calls.
"""

import structlog
from arq import ArqRedis, create_pool
from arq.connections import RedisSettings
from arq.constants import result_key_prefix
from arq.jobs import Job

from firmsync.config import settings


logger = structlog.get_logger()

PROVISION_JOB = "provision_tenant_database"


class ArqPoolHolder:
    """Process-wide arq pool, set by the app lifespan."""

    pool: ArqRedis | None = None


def get_redis_settings() -> RedisSettings:
    return RedisSettings.from_dsn(settings.redis_url)


async def init_arq_pool() -> ArqRedis:
    """Open the pool once; later calls return the same pool."""
    if ArqPoolHolder.pool is None:
        ArqPoolHolder.pool = await create_pool(get_redis_settings())
    return ArqPoolHolder.pool


async def get_arq_pool() -> ArqRedis:
    """Return the open pool.

    Raises:
        RuntimeError: If the lifespan has not opened it (or Redis was down
            at startup)
    """
    if ArqPoolHolder.pool is None:
        raise RuntimeError("ARQ pool not initialized. Call init_arq_pool() during startup.")
    return ArqPoolHolder.pool


async def close_arq_pool() -> None:
    pool, ArqPoolHolder.pool = ArqPoolHolder.pool, None
    if pool is not None:
        await pool.close()


def provision_job_id(tenant_id: int) -> str:
    """Job id for a tenant's provisioning run.

    arq refuses a second job with an id that is still queued, so repeated
    provision requests for one tenant collapse into one run.
    """
    return f"provision:{tenant_id}"


async def enqueue_provisioning(queue: ArqRedis, tenant_id: int) -> Job | None:
    """Queue provisioning for a tenant.

    arq also refuses a job id whose previous run still has a stored
    result. That result is dropped so a failed run can be retried.

    Returns:
        The queued job, or None if one is already queued or running for
        this tenant
    """
    job_id = provision_job_id(tenant_id)
    job = await queue.enqueue_job(PROVISION_JOB, tenant_id, _job_id=job_id)
    if job is not None:
        return job

    if not await queue.exists(result_key_prefix + job_id):
        return None

    await queue.delete(result_key_prefix + job_id)
    logger.info("provision_previous_result_dropped", tenant_id=tenant_id, job_id=job_id)
    return await queue.enqueue_job(PROVISION_JOB, tenant_id, _job_id=job_id)
