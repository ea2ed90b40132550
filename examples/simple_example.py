"""
Dispatch, process and retry jobs in a single process.

Run with: python -m examples.simple_example
"""

import asyncio
import logging

from kv_jobs import (
    InMemoryKeyValueStore,
    QueueConfig,
    QueueService,
    Scheduler,
    create_default_registry,
    run_worker_loop,
)
from kv_jobs.worker_main import setup_logging


async def main():
    setup_logging()
    logger = logging.getLogger("simple_example")

    config = QueueConfig(retry_delay=1)
    registry = create_default_registry(config)

    @registry.handler("flaky", retries=1)
    async def flaky(ctx, payload):
        raise ConnectionError("upstream unavailable")

    service = QueueService(config, InMemoryKeyValueStore(), registry, logger)

    email_id = await service.dispatch("email", {"to": "user@example.com", "subject": "Hi"})
    flaky_id = await service.dispatch("flaky")
    await service.dispatch("notification", {"user_id": 7, "message": "Done"}, delay=2)

    scheduler = Scheduler(service)
    entry = await scheduler.schedule("cleanup", {"type": "cache"}, "@daily")
    logger.info(f"Cleanup scheduled, next run at {entry.next_run.isoformat()}")

    # Email, flaky, and after the delays the flaky retry and the notification
    await run_worker_loop(service, sleep_time=0.5, max_jobs=4)

    for job_id in (email_id, flaky_id):
        job = await service.get_job(job_id)
        logger.info(f"{job.type}: {job.status.value} after {job.attempts} attempts")

    logger.info(f"Stats: {await service.get_queue_stats()}")

    await service.retry_job(flaky_id)
    logger.info(f"Flaky job back to {(await service.get_job(flaky_id)).status.value}")


if __name__ == "__main__":
    asyncio.run(main())
