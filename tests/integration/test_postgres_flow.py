"""Integration tests against a real Postgres using testcontainers."""

from datetime import timedelta

import asyncpg
import pytest
import pytest_asyncio

from kv_jobs.config import QueueConfig
from kv_jobs.ddl import KV_TABLE_DDL
from kv_jobs.kv import PostgresKeyValueStore
from kv_jobs.models import JobStatus
from kv_jobs.registry import create_default_registry
from kv_jobs.scheduler import Scheduler
from kv_jobs.service import QueueService
from kv_jobs.worker import run_worker_loop


@pytest.fixture(scope="module")
def postgres_container():
    """Create a PostgreSQL test container."""
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:15")
        container.start()
    except Exception as e:
        pytest.skip(f"Docker not available: {e}")

    yield container
    container.stop()


@pytest.fixture
def config(postgres_container):
    dsn = postgres_container.get_connection_url().replace(
        "postgresql+psycopg2://", "postgresql://"
    )
    return QueueConfig(db_dsn=dsn)


@pytest_asyncio.fixture
async def db_pool(config):
    """Create a database connection pool with a clean kv_entries table."""
    pool = await asyncpg.create_pool(config.db_dsn, min_size=1, max_size=5)

    async with pool.acquire() as conn:
        await conn.execute(KV_TABLE_DDL)
        await conn.execute("TRUNCATE kv_entries")

    yield pool

    await pool.close()


@pytest.fixture
def kv(db_pool):
    return PostgresKeyValueStore(db_pool)


@pytest.fixture
def service(config, kv):
    return QueueService(config, kv, create_default_registry(config))


@pytest.mark.asyncio
async def test_kv_round_trip(kv):
    assert await kv.set("queue:default", ["job_1", "job_2"], 60) is True
    assert await kv.get("queue:default") == ["job_1", "job_2"]

    await kv.set("queue:default", [], 60)
    assert await kv.get("queue:default") == []

    await kv.delete("queue:default")
    assert await kv.get("queue:default", lambda: ["fallback"]) == ["fallback"]


@pytest.mark.asyncio
async def test_kv_expired_entries_are_hidden_and_purged(kv, db_pool):
    await kv.set("stale", {"a": 1}, 60)
    await kv.set("fresh", {"b": 2}, 3600)

    async with db_pool.acquire() as conn:
        await conn.execute(
            "UPDATE kv_entries SET expires_at = now() - interval '1 second' "
            "WHERE key = 'stale'"
        )

    assert await kv.get("stale") is None
    assert await kv.purge_expired() == 1
    assert await kv.get("fresh") == {"b": 2}


@pytest.mark.asyncio
async def test_dispatch_and_process(service):
    job_id = await service.dispatch("email", {"to": "a@b.com"})

    processed = await run_worker_loop(service, "default", sleep_time=0, max_jobs=1)

    assert processed == 1
    job = await service.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.attempts == 1
    assert job.completed_at is not None
    assert (await service.get_queue_stats())["default"]["total"] == 0


@pytest.mark.asyncio
async def test_failure_backoff_and_retry(service):
    async def flaky(ctx, payload):
        raise ConnectionError("smtp down")

    service.registry.register("flaky", flaky, retries=0)
    job_id = await service.dispatch("flaky", {})

    await service.process_job(await service.get_next_job())

    job = await service.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "smtp down"
    assert await service.store.get_failed_ids() == [job_id]

    assert await service.retry_job(job_id) is True
    assert (await service.get_job(job_id)).status == JobStatus.PENDING
    assert await service.store.get_failed_ids() == []


@pytest.mark.asyncio
async def test_scheduled_job_dispatch(service):
    scheduler = Scheduler(service)
    entry = await scheduler.schedule("cleanup", {"type": "cache"}, "@hourly")

    # Pull next_run into the past instead of waiting an hour
    entry.next_run = entry.next_run - timedelta(hours=2)
    await service.store.save_schedule(entry)

    dispatched = await scheduler.process_scheduled_jobs()

    assert len(dispatched) == 1
    assert (await service.get_job(dispatched[0])).type == "cleanup"
