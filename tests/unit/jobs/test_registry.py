"""Tests for the API process's arq queue handle."""

from unittest.mock import AsyncMock, patch

import pytest

from firmsync.core.jobs import registry
from firmsync.core.jobs.registry import (
    ArqPoolHolder,
    close_arq_pool,
    enqueue_provisioning,
    get_arq_pool,
    get_redis_settings,
    init_arq_pool,
    provision_job_id,
)


@pytest.fixture(autouse=True)
def empty_holder():
    ArqPoolHolder.pool = None
    yield
    ArqPoolHolder.pool = None


@pytest.fixture
def create_pool():
    with patch.object(registry, "create_pool", new_callable=AsyncMock) as mocked:
        mocked.return_value = AsyncMock(name="queue")
        yield mocked


class TestPoolLifecycle:
    async def test_first_init_opens_a_pool(self, create_pool):
        queue = await init_arq_pool()

        assert queue is create_pool.return_value
        assert await get_arq_pool() is queue
        create_pool.assert_awaited_once()

    async def test_second_init_reuses_the_open_pool(self, create_pool):
        first = await init_arq_pool()
        second = await init_arq_pool()

        assert first is second
        assert create_pool.await_count == 1

    async def test_get_before_init_is_an_error(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            await get_arq_pool()

    async def test_close_releases_the_pool(self, create_pool):
        queue = await init_arq_pool()

        await close_arq_pool()

        queue.close.assert_awaited_once()
        with pytest.raises(RuntimeError):
            await get_arq_pool()

    async def test_close_without_pool_is_a_noop(self):
        await close_arq_pool()


class TestEnqueueProvisioning:
    async def test_queues_job_under_tenant_job_id(self):
        """Repeated requests for one tenant share a job id, so arq collapses them."""
        queue = AsyncMock()
        job = AsyncMock()
        queue.enqueue_job.return_value = job

        assert await enqueue_provisioning(queue, 42) is job
        queue.enqueue_job.assert_awaited_once_with(
            "provision_tenant_database", 42, _job_id="provision:42"
        )

    async def test_already_queued(self):
        queue = AsyncMock()
        queue.enqueue_job.return_value = None
        queue.exists.return_value = 0

        assert await enqueue_provisioning(queue, 42) is None
        queue.delete.assert_not_awaited()

    async def test_requeues_after_a_finished_run(self):
        """A stored result from the last run no longer blocks a retry."""
        queue = AsyncMock()
        job = AsyncMock()
        queue.enqueue_job.side_effect = [None, job]
        queue.exists.return_value = 1

        assert await enqueue_provisioning(queue, 42) is job
        queue.exists.assert_awaited_once_with("arq:result:provision:42")
        queue.delete.assert_awaited_once_with("arq:result:provision:42")
        assert queue.enqueue_job.await_count == 2

    def test_job_id_depends_only_on_tenant(self):
        assert provision_job_id(7) == provision_job_id(7) == "provision:7"
        assert provision_job_id(7) != provision_job_id(8)


def test_redis_settings_follow_redis_url():
    with patch.object(registry, "settings") as fake_settings:
        fake_settings.redis_url = "redis://cache.internal:6380/2"
        redis = get_redis_settings()

    assert (redis.host, redis.port, redis.database) == ("cache.internal", 6380, 2)
